"""
Pytest configuration and fixtures for PyArranger tests.
"""
import pytest
import numpy as np

from pyarranger.core.arrangement import Arrangement
from pyarranger.core.buffer import AudioBuffer
from pyarranger.core.clip import Clip
from pyarranger.core.undo_manager import UndoManager
from pyarranger.core.config import AUDIO_CONFIG

SR = 8000


def tone(seconds: float, sr: int = SR, freq: float = 220.0, channels: int = 2) -> AudioBuffer:
    """Sine buffer at half scale; the right channel runs at twice the frequency."""
    t = np.arange(int(round(seconds * sr))) / sr
    left = 0.5 * np.sin(2 * np.pi * freq * t)
    if channels == 1:
        return AudioBuffer(left, sr)
    right = 0.5 * np.sin(2 * np.pi * 2 * freq * t)
    return AudioBuffer(np.column_stack((left, right)), sr)


def constant(seconds: float, value: float = 0.5, sr: int = SR, channels: int = 2) -> AudioBuffer:
    frames = int(round(seconds * sr))
    return AudioBuffer(np.full((frames, channels), value, dtype=np.float32), sr)


def make_clip(seconds: float = 5.0, start: float = 0.0, lane: int = 0, name: str = "Clip", **kwargs) -> Clip:
    buffer = kwargs.pop('buffer', None) or tone(seconds)
    return Clip.from_buffer(buffer, name=name, start_time=start, lane=lane, **kwargs)


@pytest.fixture
def sample_mono_audio() -> np.ndarray:
    """Generate 1 second of mono sine wave audio."""
    sr = AUDIO_CONFIG.default_samplerate
    t = np.linspace(0, 1, sr, dtype=np.float32)
    return np.sin(2 * np.pi * 440 * t).astype(np.float32)


@pytest.fixture
def sample_stereo_audio() -> np.ndarray:
    """Generate 1 second of stereo sine wave audio."""
    sr = AUDIO_CONFIG.default_samplerate
    t = np.linspace(0, 1, sr, dtype=np.float32)
    left = np.sin(2 * np.pi * 440 * t).astype(np.float32)
    right = np.sin(2 * np.pi * 880 * t).astype(np.float32)
    return np.column_stack((left, right))


@pytest.fixture
def click_track() -> AudioBuffer:
    """10 seconds of short low thumps at 120 BPM."""
    sr = 22050
    n = 10 * sr
    data = np.zeros(n, dtype=np.float32)
    burst_len = int(0.03 * sr)
    t = np.arange(burst_len) / sr
    burst = (np.sin(2 * np.pi * 120 * t) * np.exp(-t * 60)).astype(np.float32)
    for start in range(0, n - burst_len, int(0.5 * sr)):
        data[start:start + burst_len] += burst
    return AudioBuffer(data, sr)


@pytest.fixture
def empty_arrangement() -> Arrangement:
    return Arrangement()


@pytest.fixture
def two_clip_lane() -> Arrangement:
    """Lane 0 holds A at [0, 5) and B at [10, 15)."""
    return Arrangement([
        make_clip(5.0, 0.0, name="A"),
        make_clip(5.0, 10.0, name="B"),
    ])


@pytest.fixture
def undo_manager() -> UndoManager:
    """Create an undo manager."""
    return UndoManager(max_depth=10)
