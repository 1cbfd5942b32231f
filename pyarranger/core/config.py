"""
Centralized configuration for PyArranger.
All magic numbers and default settings in one place.
"""
from dataclasses import dataclass
from enum import Enum, auto


class PlaybackState(Enum):
    """Playback state enumeration."""
    STOPPED = auto()
    PLAYING = auto()


class ContextState(Enum):
    """Lifecycle of the shared audio output context."""
    SUSPENDED = auto()
    RUNNING = auto()
    CLOSED = auto()


@dataclass(frozen=True, slots=True)
class AudioConfig:
    """Audio engine configuration."""
    default_samplerate: int = 44100
    playback_blocksize: int = 4096
    playback_channels: int = 2
    mix_channels: int = 2
    max_gain: float = 2.0
    default_gain: float = 1.0
    beat_clip_gain: float = 0.8


@dataclass(frozen=True, slots=True)
class ArrangementConfig:
    """Timeline geometry, snapping and edit tolerances (seconds unless noted)."""
    snap_threshold_px: float = 15.0
    min_zoom: float = 10.0  # px per second
    max_zoom: float = 300.0
    default_zoom: float = 50.0
    beat_snap_zoom_ratio: float = 0.25
    lane_height_px: float = 120.0
    gap_tolerance: float = 0.01
    fit_epsilon: float = 0.001
    min_clip_duration: float = 0.1
    split_edge_tolerance: float = 0.05
    crossfade_boundary_tolerance: float = 0.1
    default_crossfade: float = 1.0
    insertion_tolerance: float = 0.1
    default_tempo: float = 120.0
    default_fade: float = 2.0

    @property
    def beat_snap_zoom(self) -> float:
        """Zoom level above which beat-grid snapping kicks in."""
        return self.min_zoom + (self.max_zoom - self.min_zoom) * self.beat_snap_zoom_ratio


@dataclass(frozen=True, slots=True)
class UndoConfig:
    """Undo/Redo configuration."""
    max_depth: int = 20


@dataclass(frozen=True, slots=True)
class EffectsConfig:
    """Default effect parameters."""
    normalize_target: float = 0.98

    # Filters
    lowpass_cutoff: float = 1000.0
    highpass_cutoff: float = 100.0


@dataclass(frozen=True, slots=True)
class TempoConfig:
    """Tempo estimator tuning. The octave heuristic thresholds are empirical."""
    max_analysis_seconds: float = 40.0
    band_low_hz: float = 70.0
    band_high_hz: float = 400.0
    window_seconds: float = 0.005
    min_bpm: float = 60.0
    max_bpm: float = 180.0
    search_frames: int = 3000
    top_candidates: int = 5
    score_ratio: float = 0.75
    typical_min_bpm: float = 90.0
    typical_max_bpm: float = 160.0
    octave_tolerance_bpm: float = 5.0


@dataclass(frozen=True, slots=True)
class StretchConfig:
    """Granular time-stretch settings."""
    grain_seconds: float = 0.08
    overlap_ratio: float = 0.5


# Global config instances (immutable singletons)
AUDIO_CONFIG = AudioConfig()
ARRANGEMENT_CONFIG = ArrangementConfig()
UNDO_CONFIG = UndoConfig()
EFFECTS_CONFIG = EffectsConfig()
TEMPO_CONFIG = TempoConfig()
STRETCH_CONFIG = StretchConfig()
