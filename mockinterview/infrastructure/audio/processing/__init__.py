"""Audio processing and capture modules."""

# Import processing functions immediately (numpy/scipy only)
from .processing import (
    stereo_to_mono,
    remove_dc,
    resample_to_target,
    rms_level,
    to_pcm16,
    pcm16_to_float,
)
from .capture import AudioSource, MicrophoneStream, microphone_available

__all__ = [
    "AudioSource",
    "MicrophoneStream",
    "microphone_available",
    "stereo_to_mono",
    "remove_dc",
    "resample_to_target",
    "rms_level",
    "to_pcm16",
    "pcm16_to_float",
]
