"""
Type definitions for the PyArranger core module.
Provides type aliases, result objects and the engine's exception types.
"""
from typing import Any, Callable, Optional, Protocol, TYPE_CHECKING
import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from .clip import Clip

# Audio data types
AudioArray = NDArray[np.float32]  # Shape: (samples,) or (samples, channels)
MonoArray = NDArray[np.float32]   # Shape: (samples,)
StereoArray = NDArray[np.float32] # Shape: (samples, 2)

# Callback types
ProgressCallback = Callable[[int, int, str], None]  # (current, total, status)
ClipsListener = Callable[[tuple["Clip", ...]], None]

# Serialized clip shape handed to persistence
ClipRecord = dict[str, Any]


class EffectFunc(Protocol):
    """Protocol for effect functions that process audio data."""
    def __call__(self, data: AudioArray, sr: int, **kwargs: Any) -> AudioArray: ...


class EditResult:
    """Outcome of an arrangement edit. Rejected edits leave state untouched."""
    __slots__ = ('success', 'clips', 'reason')

    def __init__(
        self,
        success: bool,
        clips: Optional[list["Clip"]] = None,
        reason: Optional[str] = None
    ):
        self.success = success
        self.clips = clips or []
        self.reason = reason

    def __bool__(self) -> bool:
        return self.success

    @property
    def clip(self) -> Optional["Clip"]:
        """First clip produced by the edit, if any."""
        return self.clips[0] if self.clips else None

    @classmethod
    def ok(cls, *clips: "Clip") -> "EditResult":
        return cls(True, list(clips))

    @classmethod
    def rejected(cls, reason: str) -> "EditResult":
        return cls(False, reason=reason)

    def __repr__(self) -> str:
        if self.success:
            return f"EditResult(ok, {[c.id for c in self.clips]})"
        return f"EditResult(rejected: {self.reason})"


class EffectError(RuntimeError):
    """An effect stage failed; the clip keeps its previous buffer and effects."""


class CodecError(RuntimeError):
    """Audio bytes could not be decoded or encoded."""


class PlaybackError(RuntimeError):
    """The audio output context could not be used."""
