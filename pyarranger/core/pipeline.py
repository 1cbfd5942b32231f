"""
Non-destructive effect pipeline for PyArranger.

Every render starts from the clip's pristine source buffer and replays the
enabled stages in a fixed order, no matter in which order they were enabled:

    1. reverse
    2. speed change / time-stretch
    3. EQ preset
    4. vocal isolate (wins) or vocal remove
    5. normalize
    6. fade-in, then fade-out
"""
from __future__ import annotations
from dataclasses import replace
import logging
import re
from typing import Any, Optional

from .buffer import AudioBuffer
from .clip import ActiveEffects, AutomationPoint, Clip
from .config import ARRANGEMENT_CONFIG
from .eq import apply_eq_preset
from .time_stretch import granular_time_stretch
from .types import EffectError
from . import effects_basic as fx

logger = logging.getLogger("PyArranger")

BOOLEAN_EFFECTS = ('reverse', 'normalize', 'vocal_isolate', 'vocal_remove')
EFFECT_NAMES = ('reverse', 'speed', 'eq', 'vocal_isolate', 'vocal_remove', 'normalize', 'fade_in', 'fade_out')

_BPM_TAG = re.compile(r"\(\d+\s*BPM\)", re.IGNORECASE)


def render_effects(source: AudioBuffer, effects: ActiveEffects) -> AudioBuffer:
    """
    Derive a playback buffer from `source`. Deterministic: the same inputs
    always produce identical samples. With no stage enabled the source itself is returned.
    """
    if effects.is_empty:
        return source

    data = source.data
    sr = source.samplerate

    if effects.reverse:
        data = fx.apply_reverse(data)

    rate = effects.playback_rate
    if rate is not None and rate != 1.0:
        if effects.preserve_pitch:
            data = granular_time_stretch(data, sr, rate)
        else:
            data = fx.apply_resample(data, rate)

    if effects.eq_preset:
        data = apply_eq_preset(data, sr, effects.eq_preset)

    if effects.vocal_isolate:
        data = fx.apply_center_isolate(data)
    elif effects.vocal_remove:
        data = fx.apply_center_remove(data)

    if effects.normalize:
        data = fx.apply_normalize(data)

    duration = len(data) / sr
    if effects.fade_in:
        data = fx.apply_fade_in(data, int(round(min(effects.fade_in, duration) * sr)))
    if effects.fade_out:
        data = fx.apply_fade_out(data, int(round(min(effects.fade_out, duration) * sr)))

    return AudioBuffer(data, sr)


def enable_effect(effects: ActiveEffects, name: str, **params: Any) -> ActiveEffects:
    """
    Return `effects` with stage `name` switched on.

    Args:
        name: one of EFFECT_NAMES
        params: duration= for fades, preset= for eq,
            playback_rate= and preserve_pitch= for speed
    """
    if name in BOOLEAN_EFFECTS:
        return replace(effects, **{name: True})
    if name in ('fade_in', 'fade_out'):
        duration = float(params.get('duration', ARRANGEMENT_CONFIG.default_fade))
        if duration <= 0:
            raise ValueError(f"Fade duration must be positive, got {duration}")
        return replace(effects, **{name: duration})
    if name == 'eq':
        preset = params.get('preset')
        if not preset:
            raise ValueError("EQ requires a preset name")
        return replace(effects, eq_preset=str(preset))
    if name == 'speed':
        rate = float(params.get('playback_rate', 1.0))
        if rate <= 0:
            raise ValueError(f"Playback rate must be positive, got {rate}")
        return replace(
            effects,
            playback_rate=rate,
            preserve_pitch=bool(params.get('preserve_pitch', False))
        )
    raise ValueError(f"Unknown effect: {name!r}")


def disable_effect(effects: ActiveEffects, name: str) -> ActiveEffects:
    """Return `effects` with stage `name` removed."""
    if name in BOOLEAN_EFFECTS:
        return replace(effects, **{name: False})
    if name in ('fade_in', 'fade_out'):
        return replace(effects, **{name: None})
    if name == 'eq':
        return replace(effects, eq_preset=None)
    if name == 'speed':
        return replace(effects, playback_rate=None, preserve_pitch=False)
    raise ValueError(f"Unknown effect: {name!r}")


def toggle_effect(effects: ActiveEffects, name: str) -> ActiveEffects:
    """Flip a boolean stage (reverse, normalize, vocal isolate/remove)."""
    if name not in BOOLEAN_EFFECTS:
        raise ValueError(f"Effect {name!r} cannot be toggled")
    return replace(effects, **{name: not getattr(effects, name)})


def retag_bpm(name: str, bpm: int) -> str:
    tag = f"({bpm} BPM)"
    if _BPM_TAG.search(name):
        return _BPM_TAG.sub(tag, name)
    return f"{name} {tag}"


def _rescaled_tempo(clip: Clip, effects: ActiveEffects) -> Optional[float]:
    if not clip.tempo_hint:
        return clip.tempo_hint
    old_rate = clip.active_effects.playback_rate or 1.0
    new_rate = effects.playback_rate or 1.0
    if old_rate == new_rate:
        return clip.tempo_hint
    return float(round(clip.tempo_hint / old_rate * new_rate))


def apply_effects(clip: Clip, effects: ActiveEffects) -> Clip:
    """
    Render `effects` against the clip's source and return the updated clip.

    The new buffer is fully computed before anything is committed. If a stage
    fails, EffectError is raised and the caller still holds the unchanged clip.
    """
    try:
        buffer = render_effects(clip.source_buffer, effects)
    except Exception as e:
        logger.error("Effect pipeline failed for clip %s: %s", clip.id, e, exc_info=True)
        raise EffectError(f"Could not apply effects to '{clip.name}': {e}") from e

    # Keep the same part of the material audible when the length changes
    ratio = buffer.duration / clip.buffer_duration if clip.buffer_duration > 0 else 1.0
    trim_start = clip.trim_start * ratio
    duration = clip.duration * ratio
    if not clip.is_looping:
        trim_start = min(max(0.0, trim_start), buffer.duration)
        duration = min(duration, buffer.duration - trim_start)

    automation = tuple(
        AutomationPoint(p.time * ratio, p.value) for p in clip.volume_automation
    )

    updated = replace(
        clip,
        current_buffer=buffer,
        active_effects=effects,
        trim_start=trim_start,
        duration=duration,
        volume_automation=automation,
    )

    tempo = _rescaled_tempo(clip, effects)
    if tempo != clip.tempo_hint:
        updated = replace(updated, tempo_hint=tempo, name=retag_bpm(clip.name, int(tempo)))

    logger.info("Applied effects %s to clip %s", effects.to_dict(), clip.id)
    return updated
