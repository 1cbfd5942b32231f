"""
Linear crossfade merge of two buffers.
"""
from __future__ import annotations
import numpy as np

from .buffer import AudioBuffer
from .mixer import resample


def merge_buffers(left: AudioBuffer, right: AudioBuffer, overlap: float) -> AudioBuffer:
    """
    Join `right` onto the end of `left`, overlapping by `overlap` seconds.

    Over the overlap the left gain ramps 1 -> 0 ending at the left buffer's
    end, while the right gain ramps 0 -> 1 starting at the same point.
    Result duration is left + right - overlap at the left sample rate.
    """
    sr = left.samplerate
    right = resample(right, sr)
    channels = max(left.channels, right.channels)
    left, right = left.to_channels(channels), right.to_channels(channels)

    overlap = min(max(0.0, overlap), left.duration, right.duration)
    overlap_frames = min(int(round(overlap * sr)), left.length, right.length)
    overlap_start = left.length - overlap_frames

    total = left.duration + right.duration - overlap
    length = max(int(np.ceil(total * sr - 1e-9)), overlap_start + right.length)
    output = np.zeros((length, channels), dtype=np.float32)

    left_gain = np.ones(left.length, dtype=np.float32)
    right_gain = np.ones(right.length, dtype=np.float32)
    if overlap_frames > 0:
        left_gain[overlap_start:] = np.linspace(1, 0, overlap_frames, dtype=np.float32)
        right_gain[:overlap_frames] = np.linspace(0, 1, overlap_frames, dtype=np.float32)

    output[:left.length] += left.data * left_gain[:, np.newaxis]
    output[overlap_start:overlap_start + right.length] += right.data * right_gain[:, np.newaxis]
    return AudioBuffer(output, sr)
