"""
Pitch-preserving speed change by granular overlap-add (OLA).

Grains are copied 1:1 from input to output so pitch is kept, while the
input cursor advances `rate` times faster than the output cursor.
"""
from __future__ import annotations
import math
import numpy as np

from .types import AudioArray
from .config import STRETCH_CONFIG
from .effects_basic import apply_normalize


def grain_window(grain_size: int, overlap: int) -> np.ndarray:
    """Triangular fade-in over the first `overlap` samples and fade-out over the last."""
    i = np.arange(grain_size, dtype=np.float32)
    window = np.ones(grain_size, dtype=np.float32)
    if overlap > 0:
        head = i < overlap
        window[head] = i[head] / overlap
        tail = i > grain_size - overlap
        window[tail] = (grain_size - i[tail]) / overlap
    return window


def granular_time_stretch(
    data: AudioArray,
    sr: int,
    rate: float,
    grain_seconds: float = STRETCH_CONFIG.grain_seconds,
    overlap_ratio: float = STRETCH_CONFIG.overlap_ratio
) -> AudioArray:
    """
    Change duration by `rate` without changing pitch.

    Args:
        data: Audio samples, (samples,) or (samples, channels)
        sr: Sample rate
        rate: 0.5 = half speed (double length), 2.0 = double speed (half length)

    Returns:
        floor(len / rate) samples of stretched, peak-normalized audio.
        rate == 1.0 returns the input object unchanged.
    """
    if rate <= 0:
        raise ValueError(f"Stretch rate must be positive, got {rate}")
    if rate == 1.0:
        return data

    squeeze = data.ndim == 1
    frames = data[:, np.newaxis] if squeeze else data

    input_len = frames.shape[0]
    output_len = int(math.floor(input_len / rate))
    output = np.zeros((output_len, frames.shape[1]), dtype=np.float32)

    grain_size = int(math.floor(sr * grain_seconds))
    overlap = int(math.floor(grain_size * overlap_ratio))
    hop = grain_size - overlap
    if grain_size <= 0 or hop <= 0:
        raise ValueError("Grain size too small for this sample rate")

    window = grain_window(grain_size, overlap)[:, np.newaxis]

    # All channels share cursors, equivalent to walking each channel on its own
    input_offset = 0.0
    output_offset = 0
    while output_offset + grain_size < output_len and input_offset + grain_size < input_len:
        start = int(math.floor(input_offset))
        grain = frames[start:start + grain_size]
        output[output_offset:output_offset + grain_size] += grain * window
        output_offset += hop
        input_offset += hop * rate

    output = apply_normalize(output)
    return output[:, 0] if squeeze else output
