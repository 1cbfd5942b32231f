"""
Project save/load as plain dict records.

Audio travels as lossless float WAV bytes so a saved project reloads
sample-exact. The storage backend (file, database, network) is up to the caller.
"""
from __future__ import annotations
import logging
from typing import Any, Iterable, Optional

from .buffer import AudioBuffer
from .clip import ActiveEffects, AutomationPoint, Clip, CrossfadeLineage
from .codec import ExportFormat, decode_audio, encode_audio
from .config import AUDIO_CONFIG
from .pipeline import render_effects
from .types import ClipRecord, CodecError

logger = logging.getLogger("PyArranger")

PROJECT_VERSION = 1
PLACEHOLDER_DURATION = 5.0
_STORAGE_SUBTYPE = 'FLOAT'


def _encode(buffer: AudioBuffer) -> bytes:
    return encode_audio(buffer, ExportFormat.WAV, subtype=_STORAGE_SUBTYPE)


def _decode(raw: Optional[bytes]) -> Optional[AudioBuffer]:
    if not raw:
        return None
    try:
        return decode_audio(raw)
    except CodecError as e:
        logger.warning("Stored audio could not be decoded: %s", e)
        return None


def clip_to_record(clip: Clip) -> ClipRecord:
    """
    Serialize a clip. The source audio is stored separately only when effects
    make it differ from the current audio.
    """
    lineage = clip.crossfade_lineage
    return {
        'id': clip.id,
        'name': clip.name,
        'lane': clip.lane,
        'start_time': clip.start_time,
        'trim_start': clip.trim_start,
        'duration': clip.duration,
        'volume': clip.volume,
        'muted': clip.muted,
        'tempo_hint': clip.tempo_hint,
        'is_looping': clip.is_looping,
        'missing_data': clip.missing_data,
        'active_effects': clip.active_effects.to_dict(),
        'volume_automation': [[p.time, p.value] for p in clip.volume_automation],
        'crossfade_lineage': None if lineage is None else {
            'left': clip_to_record(lineage.left),
            'right': clip_to_record(lineage.right),
            'duration': lineage.duration,
        },
        'data': _encode(clip.current_buffer),
        'original_data': _encode(clip.source_buffer) if clip.has_effects else None,
    }


def placeholder_clip(record: ClipRecord) -> Clip:
    """Silent, muted stand-in for a clip whose audio could not be restored."""
    name = record.get('name', 'Clip')
    duration = float(record.get('duration') or PLACEHOLDER_DURATION)
    buffer = AudioBuffer.silent(duration, AUDIO_CONFIG.default_samplerate)
    logger.warning("Audio data missing for clip '%s'; inserting placeholder", name)
    kwargs: dict[str, Any] = {}
    if record.get('id'):
        kwargs['id'] = record['id']
    return Clip.from_buffer(
        buffer,
        name=f"Missing Data: {name}",
        lane=int(record.get('lane', 0)),
        start_time=float(record.get('start_time', 0.0)),
        duration=duration,
        muted=True,
        missing_data=True,
        **kwargs
    )


def clip_from_record(record: ClipRecord) -> Clip:
    """
    Rebuild a clip. Never raises on bad audio: if neither the current nor the
    source audio can be restored, a placeholder comes back instead.
    """
    effects = ActiveEffects.from_dict(record.get('active_effects'))
    current = _decode(record.get('data'))
    source = _decode(record.get('original_data'))

    if current is None and source is None:
        return placeholder_clip(record)
    if current is None:
        current = render_effects(source, effects)
    if source is None:
        if not effects.is_empty:
            logger.warning("Source audio missing for '%s'; effects are baked in", record.get('name'))
            effects = ActiveEffects()
        source = current

    raw_lineage = record.get('crossfade_lineage')
    lineage = None
    if raw_lineage:
        lineage = CrossfadeLineage(
            left=clip_from_record(raw_lineage['left']),
            right=clip_from_record(raw_lineage['right']),
            duration=float(raw_lineage['duration']),
        )

    tempo = record.get('tempo_hint')
    kwargs: dict[str, Any] = {}
    if record.get('id'):
        kwargs['id'] = record['id']
    return Clip(
        source_buffer=source,
        current_buffer=current,
        name=record.get('name', 'Clip'),
        lane=int(record.get('lane', 0)),
        start_time=float(record.get('start_time', 0.0)),
        trim_start=float(record.get('trim_start', 0.0)),
        duration=float(record.get('duration', current.duration)),
        volume=float(record.get('volume', AUDIO_CONFIG.default_gain)),
        muted=bool(record.get('muted', False)),
        tempo_hint=float(tempo) if tempo else None,
        is_looping=bool(record.get('is_looping', False)),
        active_effects=effects,
        volume_automation=tuple(
            AutomationPoint(float(t), float(v)) for t, v in record.get('volume_automation') or ()
        ),
        crossfade_lineage=lineage,
        missing_data=bool(record.get('missing_data', False)),
        **kwargs
    )


def project_to_record(clips: Iterable[Clip], **metadata: Any) -> dict[str, Any]:
    return {
        'version': PROJECT_VERSION,
        **metadata,
        'clips': [clip_to_record(c) for c in clips],
    }


def project_from_record(record: dict[str, Any]) -> list[Clip]:
    version = record.get('version', PROJECT_VERSION)
    if version > PROJECT_VERSION:
        logger.warning("Project version %s is newer than supported (%d)", version, PROJECT_VERSION)
    return [clip_from_record(r) for r in record.get('clips', [])]
