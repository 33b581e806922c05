"""
Audio input device port and the PyAudio microphone behind it.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

import numpy as np

from ....config import CHANNELS, FRAME_MS, SAMPLE_RATE_TARGET
from .processing import stereo_to_mono, remove_dc, resample_to_target, to_pcm16
from ....utils import with_suppressed_audio_warnings

logger = logging.getLogger("audio_capture")

ChunkCallback = Callable[[bytes], None]


class AudioSource(ABC):
    """Exclusive audio input device.

    Lifecycle: open -> start -> stop -> release. Audio is delivered as
    PCM16 mono at SAMPLE_RATE_TARGET, either pushed to ``on_chunk`` every
    ``chunk_ms`` or pulled with ``read_frame``.
    """

    @abstractmethod
    def open(self) -> None:
        """Acquire the device. Raises RuntimeError when it is unavailable."""

    @abstractmethod
    def start(self, on_chunk: Optional[ChunkCallback] = None, chunk_ms: int = FRAME_MS) -> None:
        ...

    @abstractmethod
    def read_frame(self, timeout: float = 0.5) -> Optional[bytes]:
        """Next captured frame, or None when nothing arrived in time."""

    @abstractmethod
    def stop(self) -> None:
        ...

    @abstractmethod
    def release(self) -> None:
        ...


@with_suppressed_audio_warnings
def microphone_available() -> bool:
    """True when PyAudio is installed and reports a default input device."""
    try:
        import pyaudio
    except ImportError:
        logger.warning("pyaudio not installed; microphone capture unavailable")
        return False
    pa = pyaudio.PyAudio()
    try:
        info = pa.get_default_input_device_info()
        return int(info.get('maxInputChannels', 0)) > 0
    except (IOError, OSError) as e:
        logger.warning(f"No default input device: {e}")
        return False
    finally:
        pa.terminate()


@with_suppressed_audio_warnings
def get_default_microphone_config():
    """
    Detect the default microphone and its parameters.
    Returns (device_index, channels, sample_rate) tuple.
    """
    import pyaudio
    pa = pyaudio.PyAudio()
    try:
        info = pa.get_default_input_device_info()
        device_index = int(info['index'])
        channels = max(1, min(2, int(info.get('maxInputChannels', CHANNELS))))
        sample_rate = int(info.get('defaultSampleRate', SAMPLE_RATE_TARGET))
        logger.info(f"Device {device_index}: {info.get('name')} ({channels} ch @ {sample_rate} Hz)")
        return device_index, channels, sample_rate
    finally:
        pa.terminate()


class MicrophoneStream(AudioSource):
    """PyAudio callback stream converted to 16 kHz mono PCM16 chunks."""

    def __init__(self, input_device: Optional[int] = None, num_channels: Optional[int] = None,
                 sr_capture: Optional[int] = None, frame_ms: int = FRAME_MS,
                 sr_target: int = SAMPLE_RATE_TARGET):
        self.input_device = input_device
        self.num_channels = num_channels
        self.sr_capture = sr_capture
        self.frame_ms = frame_ms
        self.sr_target = sr_target

        self._pa = None
        self._stream = None
        self._lock = threading.Lock()
        self._frames = []
        self._frame_ready = threading.Condition(self._lock)
        self._pending = bytearray()
        self._chunk_bytes = 0
        self._on_chunk: Optional[ChunkCallback] = None

    @with_suppressed_audio_warnings
    def open(self) -> None:
        if self._stream is not None:
            return
        try:
            import pyaudio
        except ImportError as e:
            raise RuntimeError(f"pyaudio is required for microphone capture: {e}")

        if self.input_device is None or self.num_channels is None or self.sr_capture is None:
            device, channels, rate = get_default_microphone_config()
            self.input_device = device if self.input_device is None else self.input_device
            self.num_channels = channels if self.num_channels is None else self.num_channels
            self.sr_capture = rate if self.sr_capture is None else self.sr_capture

        frame_size = int(self.sr_capture * self.frame_ms / 1000)
        self._pa = pyaudio.PyAudio()
        try:
            self._stream = self._pa.open(
                format=pyaudio.paFloat32,
                channels=self.num_channels,
                rate=self.sr_capture,
                input=True,
                frames_per_buffer=frame_size,
                input_device_index=self.input_device,
                stream_callback=self._stream_callback,
                start=False,
            )
        except (IOError, OSError) as e:
            self._pa.terminate()
            self._pa = None
            raise RuntimeError(f"Failed to open microphone {self.input_device}: {e}")
        logger.info(f"Microphone opened: device={self.input_device} ch={self.num_channels} "
                    f"rate={self.sr_capture} frame={frame_size}")

    def start(self, on_chunk: Optional[ChunkCallback] = None, chunk_ms: int = FRAME_MS) -> None:
        if self._stream is None:
            raise RuntimeError("Microphone is not open")
        with self._lock:
            self._on_chunk = on_chunk
            self._chunk_bytes = int(self.sr_target * chunk_ms / 1000) * 2
            self._pending.clear()
            self._frames.clear()
        self._stream.start_stream()

    def _stream_callback(self, in_data, frame_count, time_info, status):
        import pyaudio

        data = np.frombuffer(in_data, dtype=np.float32)
        if self.num_channels and self.num_channels > 1:
            data = stereo_to_mono(data.reshape(-1, self.num_channels))
        pcm = to_pcm16(resample_to_target(remove_dc(data), self.sr_capture, self.sr_target))

        chunks = []
        with self._lock:
            self._frames.append(pcm)
            self._frame_ready.notify_all()
            if self._on_chunk is not None:
                self._pending.extend(pcm)
                while len(self._pending) >= self._chunk_bytes:
                    chunks.append(bytes(self._pending[:self._chunk_bytes]))
                    del self._pending[:self._chunk_bytes]
            callback = self._on_chunk

        for chunk in chunks:
            try:
                callback(chunk)
            except Exception as e:
                logger.warning(f"Chunk consumer failed: {e}")
        return in_data, pyaudio.paContinue

    def read_frame(self, timeout: float = 0.5) -> Optional[bytes]:
        with self._frame_ready:
            if not self._frames:
                self._frame_ready.wait(timeout)
            if not self._frames:
                return None
            return self._frames.pop(0)

    def stop(self) -> None:
        if self._stream is not None and self._stream.is_active():
            self._stream.stop_stream()
        with self._lock:
            self._on_chunk = None
            self._frame_ready.notify_all()

    def release(self) -> None:
        stream, self._stream = self._stream, None
        pa, self._pa = self._pa, None
        try:
            if stream is not None:
                stream.close()
        finally:
            if pa is not None:
                pa.terminate()
        logger.info("Microphone released")
