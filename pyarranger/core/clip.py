from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Optional
import uuid

from .buffer import AudioBuffer
from .config import AUDIO_CONFIG


def new_clip_id() -> str:
    return uuid.uuid4().hex[:9]


@dataclass(frozen=True)
class AutomationPoint:
    """Gain control point. `time` is on the buffer axis, like `trim_start`."""
    time: float
    value: float


@dataclass(frozen=True)
class ActiveEffects:
    """
    Declarative record of the enabled non-destructive effect stages.
    None / False means the stage is off.
    """
    fade_in: Optional[float] = None
    fade_out: Optional[float] = None
    eq_preset: Optional[str] = None
    playback_rate: Optional[float] = None
    preserve_pitch: bool = False
    normalize: bool = False
    reverse: bool = False
    vocal_isolate: bool = False
    vocal_remove: bool = False

    @property
    def is_empty(self) -> bool:
        return self == ActiveEffects()

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if v is not None and v is not False}

    @classmethod
    def from_dict(cls, values: Optional[dict]) -> "ActiveEffects":
        if not values:
            return cls()
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in values.items() if k in known})


@dataclass(frozen=True)
class CrossfadeLineage:
    """The two original clips a merged clip was built from, held by value."""
    left: "Clip"
    right: "Clip"
    duration: float


@dataclass(frozen=True)
class Clip:
    """
    A placed, trimmed region of audio on a lane.
    The audible window is [trim_start, trim_start + duration) of current_buffer.
    """
    source_buffer: AudioBuffer
    current_buffer: AudioBuffer
    name: str = "Clip"
    id: str = field(default_factory=new_clip_id)
    lane: int = 0
    start_time: float = 0.0
    trim_start: float = 0.0
    duration: float = 0.0
    volume: float = AUDIO_CONFIG.default_gain
    muted: bool = False
    tempo_hint: Optional[float] = None
    is_looping: bool = False
    active_effects: ActiveEffects = field(default_factory=ActiveEffects)
    volume_automation: tuple[AutomationPoint, ...] = ()
    crossfade_lineage: Optional[CrossfadeLineage] = None
    missing_data: bool = False

    @classmethod
    def from_buffer(cls, buffer: AudioBuffer, name: str = "Clip", **kwargs) -> "Clip":
        """New clip whose source and current buffer are the same audio."""
        kwargs.setdefault("duration", buffer.duration)
        return cls(source_buffer=buffer, current_buffer=buffer, name=name, **kwargs)

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    @property
    def interval(self) -> tuple[float, float]:
        return (self.start_time, self.end_time)

    @property
    def window(self) -> tuple[float, float]:
        """Trim window on the buffer axis."""
        return (self.trim_start, self.trim_start + self.duration)

    @property
    def buffer_duration(self) -> float:
        return self.current_buffer.duration

    @property
    def has_effects(self) -> bool:
        return not self.active_effects.is_empty

    def contains(self, time: float, margin: float = 0.0) -> bool:
        """True if `time` lies strictly inside the clip, `margin` away from both edges."""
        rel = time - self.start_time
        return margin < rel < self.duration - margin

    def overlaps(self, other: "Clip") -> bool:
        return self.start_time < other.end_time and other.start_time < self.end_time

    def evolve(self, **changes) -> "Clip":
        """Copy with fields replaced (same id unless given)."""
        return replace(self, **changes)

    def __repr__(self) -> str:
        return (
            f"Clip(id='{self.id}', name='{self.name}', lane={self.lane}, "
            f"start={self.start_time:.2f}s, dur={self.duration:.2f}s)"
        )
