"""
Basic audio effects for PyArranger.
All functions are pure (no side effects) and operate on numpy arrays.
Optimized with numpy vectorization for performance.
"""
from __future__ import annotations
import math
import numpy as np
from scipy.signal import butter, lfilter
from scipy.interpolate import interp1d

from .types import AudioArray
from .config import EFFECTS_CONFIG


def apply_normalize(
    data: AudioArray,
    target_peak: float = EFFECTS_CONFIG.normalize_target
) -> AudioArray:
    """
    Scale audio so its global peak hits the target level.

    Args:
        data: Audio samples
        target_peak: Target peak amplitude (0.0 to 1.0)

    Returns:
        Normalized audio data (input unchanged if silent)
    """
    if data.size == 0:
        return data
    peak = float(np.max(np.abs(data)))
    if peak == 0.0:
        return data
    return (data * (target_peak / peak)).astype(np.float32)


def apply_fade_in(data: AudioArray, duration_samples: int | None = None) -> AudioArray:
    """
    Apply linear fade-in to audio data.

    Args:
        data: Audio samples
        duration_samples: Fade duration in samples (None = full length)

    Returns:
        Faded audio data
    """
    length = len(data)
    if length == 0:
        return data

    fade_len = duration_samples if duration_samples else length
    fade_len = min(fade_len, length)

    fade_curve = np.ones(length, dtype=np.float32)
    fade_curve[:fade_len] = np.linspace(0, 1, fade_len, dtype=np.float32)

    if data.ndim > 1:
        fade_curve = fade_curve[:, np.newaxis]

    return (data * fade_curve).astype(np.float32)


def apply_fade_out(data: AudioArray, duration_samples: int | None = None) -> AudioArray:
    """
    Apply linear fade-out to audio data.

    Args:
        data: Audio samples
        duration_samples: Fade duration in samples (None = full length)

    Returns:
        Faded audio data
    """
    length = len(data)
    if length == 0:
        return data

    fade_len = duration_samples if duration_samples else length
    fade_len = min(fade_len, length)

    fade_curve = np.ones(length, dtype=np.float32)
    fade_curve[length - fade_len:] = np.linspace(1, 0, fade_len, dtype=np.float32)

    if data.ndim > 1:
        fade_curve = fade_curve[:, np.newaxis]

    return (data * fade_curve).astype(np.float32)


def apply_lowpass(
    data: AudioArray,
    sr: int,
    cutoff: float = EFFECTS_CONFIG.lowpass_cutoff,
    order: int = 2
) -> AudioArray:
    """
    Apply Butterworth low-pass filter.

    Args:
        data: Audio samples
        sr: Sample rate
        cutoff: Cutoff frequency in Hz
        order: Filter order

    Returns:
        Filtered audio data
    """
    nyquist = 0.5 * sr
    normal_cutoff = np.clip(cutoff / nyquist, 0.001, 0.999)

    b, a = butter(order, normal_cutoff, btype='low', analog=False)
    return lfilter(b, a, data, axis=0).astype(np.float32)


def apply_highpass(
    data: AudioArray,
    sr: int,
    cutoff: float = EFFECTS_CONFIG.highpass_cutoff,
    order: int = 2
) -> AudioArray:
    """
    Apply Butterworth high-pass filter.

    Args:
        data: Audio samples
        sr: Sample rate
        cutoff: Cutoff frequency in Hz
        order: Filter order

    Returns:
        Filtered audio data
    """
    nyquist = 0.5 * sr
    normal_cutoff = np.clip(cutoff / nyquist, 0.001, 0.999)

    b, a = butter(order, normal_cutoff, btype='high', analog=False)
    return lfilter(b, a, data, axis=0).astype(np.float32)


def apply_bandpass(
    data: AudioArray,
    sr: int,
    low_cutoff: float = 70.0,
    high_cutoff: float = 400.0,
    order: int = 2
) -> AudioArray:
    """
    Band-limit by cascading a low-pass and a high-pass stage.

    Args:
        data: Audio samples
        sr: Sample rate
        low_cutoff: High-pass corner in Hz
        high_cutoff: Low-pass corner in Hz
        order: Order of each stage

    Returns:
        Filtered audio data
    """
    filtered = apply_lowpass(data, sr, cutoff=high_cutoff, order=order)
    return apply_highpass(filtered, sr, cutoff=low_cutoff, order=order)


def apply_low_shelf(
    data: AudioArray,
    sr: int,
    cutoff: float = 200.0,
    gain_db: float = 6.0,
    Q: float = 0.707
) -> AudioArray:
    """
    Apply low-shelf EQ filter.

    Args:
        data: Audio samples
        sr: Sample rate
        cutoff: Shelf frequency in Hz
        gain_db: Gain in dB (positive = boost, negative = cut)
        Q: Q factor for shelf shape

    Returns:
        Filtered audio data
    """
    A = 10 ** (gain_db / 40)
    omega = 2 * math.pi * cutoff / sr
    sn, cs = math.sin(omega), math.cos(omega)
    alpha = sn / (2 * Q)

    b0 = A * ((A + 1) - (A - 1) * cs + 2 * math.sqrt(A) * alpha)
    b1 = 2 * A * ((A - 1) - (A + 1) * cs)
    b2 = A * ((A + 1) - (A - 1) * cs - 2 * math.sqrt(A) * alpha)
    a0 = (A + 1) + (A - 1) * cs + 2 * math.sqrt(A) * alpha
    a1 = -2 * ((A - 1) + (A + 1) * cs)
    a2 = (A + 1) + (A - 1) * cs - 2 * math.sqrt(A) * alpha

    b = np.array([b0, b1, b2]) / a0
    a = np.array([a0, a1, a2]) / a0

    return lfilter(b, a, data, axis=0).astype(np.float32)


def apply_high_shelf(
    data: AudioArray,
    sr: int,
    cutoff: float = 8000.0,
    gain_db: float = 3.0,
    Q: float = 0.707
) -> AudioArray:
    """
    Apply high-shelf EQ filter.

    Args:
        data: Audio samples
        sr: Sample rate
        cutoff: Shelf frequency in Hz
        gain_db: Gain in dB (positive = boost, negative = cut)
        Q: Q factor for shelf shape

    Returns:
        Filtered audio data
    """
    A = 10 ** (gain_db / 40)
    omega = 2 * math.pi * cutoff / sr
    sn, cs = math.sin(omega), math.cos(omega)
    alpha = sn / (2 * Q)

    b0 = A * ((A + 1) + (A - 1) * cs + 2 * math.sqrt(A) * alpha)
    b1 = -2 * A * ((A - 1) + (A + 1) * cs)
    b2 = A * ((A + 1) + (A - 1) * cs - 2 * math.sqrt(A) * alpha)
    a0 = (A + 1) - (A - 1) * cs + 2 * math.sqrt(A) * alpha
    a1 = 2 * ((A - 1) - (A + 1) * cs)
    a2 = (A + 1) - (A - 1) * cs - 2 * math.sqrt(A) * alpha

    b = np.array([b0, b1, b2]) / a0
    a = np.array([a0, a1, a2]) / a0

    return lfilter(b, a, data, axis=0).astype(np.float32)


def apply_peaking_eq(
    data: AudioArray,
    sr: int,
    frequency: float = 1000.0,
    gain_db: float = 0.0,
    Q: float = 1.0
) -> AudioArray:
    """
    Apply parametric peaking EQ band.

    Args:
        data: Audio samples
        sr: Sample rate
        frequency: Center frequency in Hz
        gain_db: Gain in dB (positive = boost, negative = cut)
        Q: Q factor (bandwidth control)

    Returns:
        Filtered audio data
    """
    if abs(gain_db) < 0.01:  # Skip if negligible gain
        return data

    A = 10 ** (gain_db / 40.0)
    omega = 2 * math.pi * frequency / sr
    sn = math.sin(omega)
    cs = math.cos(omega)
    alpha = sn / (2 * Q)

    b0 = 1 + alpha * A
    b1 = -2 * cs
    b2 = 1 - alpha * A
    a0 = 1 + alpha / A
    a1 = -2 * cs
    a2 = 1 - alpha / A

    b = np.array([b0, b1, b2]) / a0
    a = np.array([a0, a1, a2]) / a0

    return lfilter(b, a, data, axis=0).astype(np.float32)


def apply_resample(
    data: AudioArray,
    factor: float = 1.0,
    kind: str = 'linear'
) -> AudioArray:
    """
    Change speed and pitch together by reading the input at `factor` times
    the normal rate.

    Args:
        data: Audio samples
        factor: Speed factor (>1 = faster/higher, <1 = slower/lower)
        kind: Interpolation type ('linear', 'cubic', 'quadratic')

    Returns:
        Resampled audio data, ceil(len / factor) samples long
    """
    if factor <= 0:
        raise ValueError(f"Playback rate must be positive, got {factor}")
    if factor == 1.0:
        return data

    length = len(data)
    new_length = int(math.ceil(length / factor))

    if length < 2 or new_length <= 0:
        return data

    x = np.arange(length)
    x_new = np.arange(new_length) * factor

    f = interp1d(x, data, kind=kind, axis=0, bounds_error=False, fill_value=0.0)
    return f(x_new).astype(np.float32)


def apply_reverse(data: AudioArray) -> AudioArray:
    """
    Reverse audio data.

    Args:
        data: Audio samples

    Returns:
        Reversed audio data
    """
    return np.flip(data, axis=0).copy().astype(np.float32)


def apply_center_remove(data: AudioArray) -> AudioArray:
    """
    Karaoke-style center cancellation: L - R on both channels.
    Mono input is returned unchanged.
    """
    if data.ndim == 1 or data.shape[1] < 2:
        return data
    side = data[:, 0] - data[:, 1]
    return np.column_stack((side, side)).astype(np.float32)


def apply_center_isolate(data: AudioArray) -> AudioArray:
    """
    Center-channel approximation: (L + R) / 2 on both channels.
    Mono input is returned unchanged.
    """
    if data.ndim == 1 or data.shape[1] < 2:
        return data
    mid = (data[:, 0] + data[:, 1]) / 2.0
    return np.column_stack((mid, mid)).astype(np.float32)
