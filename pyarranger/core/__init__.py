"""
PyArranger Core Module

This module contains the arrangement engine:
- AudioEngine: Session facade (imports, edits, effects, export, transport)
- Arrangement: Clip store with lane placement rules and undo history
- Clip / AudioBuffer: Immutable clip and sample values
- Pipeline: Non-destructive effect chain
- Mixer: Offline mixdown and crossfade merge
- PlaybackController / AudioContext: Audio output
"""
from .audio_engine import AudioEngine
from .arrangement import Arrangement, DropTarget, Gap, split_names
from .buffer import AudioBuffer
from .clip import ActiveEffects, AutomationPoint, Clip, CrossfadeLineage
from .codec import ExportFormat, decode_audio, encode_audio
from .jobs import RenderJob, RenderJobRunner
from .mixer import mixdown, render_clip
from .pipeline import apply_effects, render_effects
from .playback import AudioContext, PlaybackController
from .tempo import estimate_tempo
from .types import CodecError, EditResult, EffectError, PlaybackError
from .undo_manager import UndoManager
from .config import (
    AUDIO_CONFIG,
    ARRANGEMENT_CONFIG,
    EFFECTS_CONFIG,
    TEMPO_CONFIG,
    STRETCH_CONFIG,
    UNDO_CONFIG,
    ContextState,
    PlaybackState
)
from . import effects_basic
from . import persistence

__all__ = [
    # Main classes
    'AudioEngine',
    'Arrangement',
    'DropTarget',
    'Gap',
    'AudioBuffer',
    'Clip',
    'ActiveEffects',
    'AutomationPoint',
    'CrossfadeLineage',
    'PlaybackController',
    'AudioContext',
    'RenderJob',
    'RenderJobRunner',
    'UndoManager',
    'EditResult',
    'ExportFormat',
    # Functions
    'apply_effects',
    'render_effects',
    'decode_audio',
    'encode_audio',
    'estimate_tempo',
    'mixdown',
    'render_clip',
    'split_names',
    # Errors
    'CodecError',
    'EffectError',
    'PlaybackError',
    # Config
    'AUDIO_CONFIG',
    'ARRANGEMENT_CONFIG',
    'EFFECTS_CONFIG',
    'TEMPO_CONFIG',
    'STRETCH_CONFIG',
    'UNDO_CONFIG',
    'ContextState',
    'PlaybackState',
    # Submodules
    'effects_basic',
    'persistence',
]
