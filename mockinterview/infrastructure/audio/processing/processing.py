"""
Basic audio processing functions including format conversions and normalization.
"""
from math import gcd

import numpy as np
from scipy.signal import resample_poly

from ....config import SAMPLE_RATE_TARGET


def stereo_to_mono(x: np.ndarray) -> np.ndarray:
    """Convert multi-channel audio to mono by averaging channels."""
    if x.ndim == 1:
        return x
    return np.mean(x, axis=1)


def remove_dc(x: np.ndarray) -> np.ndarray:
    """Remove DC offset from audio signal."""
    if x.size == 0:
        return x
    return x - np.mean(x)


def resample_to_target(mono: np.ndarray, sr_in: int, sr_out: int = SAMPLE_RATE_TARGET) -> np.ndarray:
    """Resample audio from the device rate to the recognizer rate."""
    if sr_in == sr_out or mono.size == 0:
        return mono.astype(np.float32)
    g = gcd(int(sr_in), int(sr_out))
    return resample_poly(mono, up=sr_out // g, down=sr_in // g).astype(np.float32)


def rms_level(audio: np.ndarray) -> float:
    """Root-mean-square level of a float signal in [-1, 1]."""
    if audio.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(audio, dtype=np.float64))))


def to_pcm16(audio: np.ndarray) -> bytes:
    """Float [-1, 1] -> little-endian PCM16 bytes."""
    return np.clip(audio * 32767, -32768, 32767).astype(np.int16).tobytes()


def pcm16_to_float(data: bytes) -> np.ndarray:
    """PCM16 bytes -> float32 [-1, 1]."""
    return np.frombuffer(data, dtype=np.int16).astype(np.float32) / 32768.0
