"""
Immutable multi-channel sample buffer.
"""
from __future__ import annotations
from dataclasses import dataclass
import numpy as np

from .types import AudioArray


def _freeze(data: np.ndarray) -> AudioArray:
    arr = np.asarray(data, dtype=np.float32)
    if arr.ndim == 1:
        arr = arr[:, np.newaxis]
    if arr.ndim != 2:
        raise ValueError(f"Audio data must be 1-D or 2-D, got shape {arr.shape}")
    if arr.flags.writeable or not arr.flags.c_contiguous:
        arr = np.ascontiguousarray(arr).copy()
        arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    """
    Samples shaped (frames, channels) plus their sample rate.
    The array is read-only, so buffers can be shared between clip snapshots.
    """
    data: AudioArray
    samplerate: int

    def __post_init__(self) -> None:
        if self.samplerate <= 0:
            raise ValueError(f"Invalid samplerate: {self.samplerate}")
        object.__setattr__(self, 'data', _freeze(self.data))

    @classmethod
    def from_array(cls, data: np.ndarray, samplerate: int) -> "AudioBuffer":
        return cls(data, int(samplerate))

    @classmethod
    def silent(cls, seconds: float, samplerate: int, channels: int = 2) -> "AudioBuffer":
        """Generate a silent buffer."""
        frames = max(1, int(round(seconds * samplerate)))
        return cls(np.zeros((frames, channels), dtype=np.float32), samplerate)

    @property
    def length(self) -> int:
        """Number of frames."""
        return self.data.shape[0]

    @property
    def channels(self) -> int:
        return self.data.shape[1]

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.length / self.samplerate

    def frame_at(self, seconds: float) -> int:
        return int(np.floor(seconds * self.samplerate))

    def slice_seconds(self, start: float, end: float) -> "AudioBuffer":
        """Copy of [start, end) in seconds, clamped to the buffer."""
        a = min(max(0, self.frame_at(start)), self.length)
        b = min(max(a, self.frame_at(end)), self.length)
        return AudioBuffer(self.data[a:b], self.samplerate)

    def to_channels(self, channels: int) -> "AudioBuffer":
        """Up/down-mix to the requested channel count."""
        if channels == self.channels:
            return self
        if self.channels == 1:
            return AudioBuffer(np.repeat(self.data, channels, axis=1), self.samplerate)
        if channels == 1:
            return AudioBuffer(self.data.mean(axis=1, keepdims=True), self.samplerate)
        out = np.zeros((self.length, channels), dtype=np.float32)
        n = min(channels, self.channels)
        out[:, :n] = self.data[:, :n]
        return AudioBuffer(out, self.samplerate)

    def mono(self) -> np.ndarray:
        """Average of all channels as a 1-D array."""
        return self.data.mean(axis=1).astype(np.float32)

    def with_data(self, data: np.ndarray) -> "AudioBuffer":
        """New buffer at the same sample rate."""
        return AudioBuffer(data, self.samplerate)

    def equals(self, other: "AudioBuffer", atol: float = 0.0) -> bool:
        if self.samplerate != other.samplerate or self.data.shape != other.data.shape:
            return False
        if atol == 0.0:
            return bool(np.array_equal(self.data, other.data))
        return bool(np.allclose(self.data, other.data, atol=atol))

    def __repr__(self) -> str:
        return f"AudioBuffer({self.duration:.2f}s, {self.channels}ch, {self.samplerate}Hz)"
