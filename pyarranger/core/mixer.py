"""
Offline mix engine: renders the arrangement into one buffer.
"""
from __future__ import annotations
from math import gcd
import logging
from typing import Iterable, Optional
import numpy as np
from scipy.signal import resample_poly

from .buffer import AudioBuffer
from .clip import Clip
from .config import AUDIO_CONFIG

logger = logging.getLogger("PyArranger")


def resample(buffer: AudioBuffer, samplerate: int) -> AudioBuffer:
    """Polyphase resampling to a new sample rate."""
    if buffer.samplerate == samplerate:
        return buffer
    if buffer.length == 0:
        return AudioBuffer(buffer.data, samplerate)
    g = gcd(int(samplerate), int(buffer.samplerate))
    up, down = samplerate // g, buffer.samplerate // g
    data = resample_poly(buffer.data, up, down, axis=0)
    return AudioBuffer(data.astype(np.float32), samplerate)


def gain_envelope(clip: Clip, n_frames: int, samplerate: int) -> np.ndarray:
    """
    Per-frame gain for the clip window: scalar volume times the
    piecewise-linear automation curve (first/last values held outside the points).
    """
    gain = np.full(n_frames, clip.volume, dtype=np.float32)
    if clip.volume_automation and n_frames > 0:
        points = sorted(clip.volume_automation, key=lambda p: p.time)
        times = np.array([p.time for p in points], dtype=np.float64)
        values = np.array([p.value for p in points], dtype=np.float64)
        t = clip.trim_start + np.arange(n_frames) / samplerate
        gain *= np.interp(t, times, values).astype(np.float32)
    return gain


def render_clip(clip: Clip, samplerate: Optional[int] = None, apply_gain: bool = True) -> AudioBuffer:
    """
    The clip's audible window [trim_start, trim_start + duration).
    Looping clips wrap around their buffer; others stop at the buffer end.
    """
    buffer = clip.current_buffer
    if samplerate is not None:
        buffer = resample(buffer, samplerate)
    sr = buffer.samplerate

    start = int(round(clip.trim_start * sr))
    n_frames = max(0, int(round(clip.duration * sr)))

    if clip.is_looping and buffer.length > 0:
        idx = (start + np.arange(n_frames)) % buffer.length
        data = buffer.data[idx]
    else:
        data = buffer.data[start:start + n_frames]

    if apply_gain:
        data = data * gain_envelope(clip, len(data), sr)[:, np.newaxis]
    return AudioBuffer(data, sr)


def timeline_end(clips: Iterable[Clip]) -> float:
    """Latest end time across all clips (muted ones included)."""
    return max((c.end_time for c in clips), default=0.0)


def mix_samplerate(clips: Iterable[Clip]) -> int:
    """Highest sample rate among the clips' buffers."""
    return max(
        (c.current_buffer.samplerate for c in clips),
        default=AUDIO_CONFIG.default_samplerate
    )


def mixdown(
    clips: Iterable[Clip],
    target_samplerate: Optional[int] = None,
    channels: int = AUDIO_CONFIG.mix_channels
) -> Optional[AudioBuffer]:
    """
    Mix all non-muted clips into one buffer.

    The mix runs at the highest clip sample rate and is resampled to
    `target_samplerate` as a final pass when one is requested.

    Returns:
        Mixed buffer, or None when there is nothing on the timeline
    """
    clips = list(clips)
    if not clips:
        return None

    sr = mix_samplerate(clips)
    total = timeline_end(clips)
    length = int(np.ceil(total * sr))
    if length <= 0:
        return None

    # Pre-allocate output buffer
    output = np.zeros((length, channels), dtype=np.float32)

    for clip in clips:
        if clip.muted:
            continue
        segment = render_clip(clip, sr).to_channels(channels).data
        offset = int(round(clip.start_time * sr))
        end = min(length, offset + len(segment))
        if end <= offset:
            continue
        output[offset:end] += segment[:end - offset]

    # Prevent digital clipping
    np.clip(output, -1.0, 1.0, out=output)

    mixed = AudioBuffer(output, sr)
    if target_samplerate and target_samplerate != sr:
        logger.info("Resampling mix from %d Hz to %d Hz", sr, target_samplerate)
        mixed = resample(mixed, target_samplerate)
    return mixed
