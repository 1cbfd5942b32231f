"""
Arrangement model for PyArranger.

Owns the clips placed on the timeline (keyed by id) and is the only place
they are mutated. Every successful edit keeps the lane invariant: clips that
share a lane never overlap in time. A snapshot of the previous clip set is
pushed to the undo history before each edit is committed.
"""
from __future__ import annotations
from dataclasses import dataclass
import bisect
import logging
import math
import re
from typing import Callable, Iterator, Optional

from .clip import AutomationPoint, Clip, CrossfadeLineage, new_clip_id
from .config import ARRANGEMENT_CONFIG, AUDIO_CONFIG, UNDO_CONFIG, ArrangementConfig
from .crossfade import merge_buffers
from .mixer import render_clip, timeline_end
from .types import ClipsListener, EditResult
from .undo_manager import UndoManager

logger = logging.getLogger("PyArranger")

Snapshot = tuple[Clip, ...]

_SUFFIX = re.compile(r"\s([A-Z])(\s\d+)?$")
_SIBLING_SUFFIX = re.compile(r"^\s([A-Z])(\s\d+)?$")


# =============================================================================
# SPLIT NAMING
# =============================================================================

def suffix_for(index: int) -> str:
    """1 -> 'A', ..., 26 -> 'Z', 27 -> 'Z 2', 28 -> 'Z 3', ..."""
    if index <= 26:
        return chr(64 + index)
    return f"Z {index - 25}"


def suffix_index(letter: str, number: Optional[str]) -> int:
    """Inverse of suffix_for."""
    n = int(number.strip()) if number else 0
    if letter == 'Z' and n > 0:
        return 25 + n
    return ord(letter) - 64


def split_names(name: str, existing_names: list[str]) -> tuple[str, str]:
    """
    Names for the two halves of a split.

    A plain name gets the next two unused suffixes ('Take' -> 'Take A', 'Take B').
    An already suffixed name keeps itself for the left half and only the
    right half gets a new suffix.
    """
    match = _SUFFIX.search(name)
    base = name[:match.start()] if match else name

    max_index = 0
    for other in existing_names:
        if not other.startswith(base):
            continue
        m = _SIBLING_SUFFIX.match(other[len(base):])
        if m:
            max_index = max(max_index, suffix_index(m.group(1), m.group(2)))

    if match:
        return name, f"{base} {suffix_for(max_index + 1)}"
    return f"{base} {suffix_for(max_index + 1)}", f"{base} {suffix_for(max_index + 2)}"


# =============================================================================
# PLACEMENT HELPERS
# =============================================================================

@dataclass(frozen=True, slots=True)
class Gap:
    """Free interval of a lane. The last gap of every lane ends at +inf."""
    start: float
    end: float

    @property
    def size(self) -> float:
        return self.end - self.start

    def holds(self, duration: float, tolerance: float) -> bool:
        return self.size >= duration - tolerance

    def clamp(self, start: float, duration: float) -> float:
        """Closest start inside this gap for a clip of `duration`."""
        return max(self.start, min(start, self.end - duration))


@dataclass(frozen=True, slots=True)
class DropTarget:
    """Where a dragged clip lands."""
    lane: int
    start_time: float
    snapped: bool = False


class Arrangement:
    """
    Arena of clips plus bounded undo history.
    Listeners receive the new clip tuple after every committed change.
    """
    def __init__(
        self,
        clips: tuple[Clip, ...] | list[Clip] = (),
        max_history: int = UNDO_CONFIG.max_depth,
        config: ArrangementConfig = ARRANGEMENT_CONFIG
    ) -> None:
        self.config = config
        self._clips: dict[str, Clip] = {}
        self.history: UndoManager[Snapshot] = UndoManager(max_depth=max_history)
        self._listeners: list[ClipsListener] = []
        for clip in clips:
            if not self._fits(clip.lane, clip.start_time, clip.duration, exclude=(clip.id,)):
                raise ValueError(f"{clip!r} overlaps another clip in lane {clip.lane}")
            self._clips[clip.id] = clip

    # --- Queries ---

    @property
    def clips(self) -> tuple[Clip, ...]:
        return tuple(self._clips.values())

    def __len__(self) -> int:
        return len(self._clips)

    def __iter__(self) -> Iterator[Clip]:
        return iter(self.clips)

    def __contains__(self, clip_id: object) -> bool:
        return clip_id in self._clips

    def get(self, clip_id: str) -> Clip:
        """Clip by id; KeyError if unknown."""
        try:
            return self._clips[clip_id]
        except KeyError:
            raise KeyError(f"Unknown clip id: {clip_id}") from None

    def find(self, clip_id: str) -> Optional[Clip]:
        return self._clips.get(clip_id)

    @property
    def lanes(self) -> list[int]:
        return sorted({c.lane for c in self._clips.values()})

    def clips_in_lane(self, lane: int, exclude: tuple[str, ...] = ()) -> list[Clip]:
        """Clips of a lane sorted by start time."""
        found = [c for c in self._clips.values() if c.lane == lane and c.id not in exclude]
        return sorted(found, key=lambda c: c.start_time)

    @property
    def timeline_end(self) -> float:
        return timeline_end(self._clips.values())

    @property
    def project_tempo(self) -> float:
        """Tempo of the first clip that has one, else the default."""
        for clip in self._clips.values():
            if clip.tempo_hint:
                return clip.tempo_hint
        return self.config.default_tempo

    def snapshot(self) -> Snapshot:
        return self.clips

    # --- Listeners and history ---

    def subscribe(self, listener: ClipsListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    def _checkpoint(self, description: str) -> None:
        self.history.push(description, self.snapshot())

    def _restore(self, snapshot: Snapshot) -> None:
        self._clips = {c.id: c for c in snapshot}
        self._notify()

    def undo(self) -> bool:
        snapshot = self.history.undo(self.snapshot())
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    def redo(self) -> bool:
        snapshot = self.history.redo(self.snapshot())
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    def _replace(self, old_id: str, new_clips: list[Clip]) -> None:
        """Swap one clip for several, keeping list order."""
        items = list(self._clips.items())
        idx = next(i for i, (cid, _) in enumerate(items) if cid == old_id)
        items[idx:idx + 1] = [(c.id, c) for c in new_clips]
        self._clips = dict(items)

    # --- Invariants ---

    def overlapping_pairs(self) -> list[tuple[Clip, Clip]]:
        """Every pair of same-lane clips whose intervals intersect."""
        tolerance = self.config.fit_epsilon
        pairs = []
        for lane in self.lanes:
            lane_clips = self.clips_in_lane(lane)
            for a, b in zip(lane_clips, lane_clips[1:]):
                if a.end_time > b.start_time + tolerance:
                    pairs.append((a, b))
        return pairs

    def check_invariants(self) -> bool:
        """True when no lane has overlapping clips and every trim window is valid."""
        if self.overlapping_pairs():
            return False
        return all(self._valid_window(c) for c in self._clips.values())

    def _valid_window(self, clip: Clip) -> bool:
        if clip.trim_start < 0 or clip.duration <= 0:
            return False
        if clip.is_looping:
            return True
        return clip.trim_start + clip.duration <= clip.buffer_duration + self.config.fit_epsilon

    def _fits(self, lane: int, start: float, duration: float, exclude: tuple[str, ...] = ()) -> bool:
        if start < -self.config.fit_epsilon:
            return False
        end = start + duration
        eps = self.config.fit_epsilon
        return all(
            not (c.start_time < end - eps and start < c.end_time - eps)
            for c in self.clips_in_lane(lane, exclude)
        )

    # --- Adding and removing ---

    def add_clip(self, clip: Clip, record_history: bool = True) -> EditResult:
        """Place a clip as-is. Rejected if it would overlap its lane."""
        return self.add_clips([clip], record_history=record_history)

    def add_clips(self, clips: list[Clip], record_history: bool = True) -> EditResult:
        """Place several clips in one edit; all or nothing."""
        staged: list[Clip] = []
        for clip in clips:
            if clip.id in self._clips or any(c.id == clip.id for c in staged):
                return EditResult.rejected(f"Duplicate clip id {clip.id}")
            if not self._valid_window(clip):
                return EditResult.rejected(f"Invalid trim window for {clip.name}")
            clash = any(
                c.lane == clip.lane and c.overlaps(clip) for c in staged
            ) or not self._fits(clip.lane, clip.start_time, clip.duration)
            if clash:
                logger.debug("Rejected adding %r: lane %d occupied", clip, clip.lane)
                return EditResult.rejected(f"Lane {clip.lane} is occupied at {clip.start_time:.2f}s")
            staged.append(clip)

        if record_history:
            self._checkpoint(f"Add {len(staged)} clip(s)")
        for clip in staged:
            self._clips[clip.id] = clip
        self._notify()
        return EditResult.ok(*staged)

    def remove_clip(self, clip_id: str) -> EditResult:
        clip = self.get(clip_id)
        self._checkpoint(f"Delete {clip.name}")
        del self._clips[clip_id]
        self._notify()
        return EditResult.ok(clip)

    def replace_clip(self, clip: Clip, description: str = "Update clip") -> EditResult:
        """
        Replace the clip with the same id by an updated value, e.g. after an
        effect render changed its length. A window that grew into the next
        clip of the lane is shortened to end at that clip.
        """
        self.get(clip.id)
        next_start = min(
            (c.start_time for c in self.clips_in_lane(clip.lane, (clip.id,))
             if c.start_time >= clip.start_time - self.config.fit_epsilon),
            default=math.inf
        )
        if clip.end_time > next_start:
            room = next_start - clip.start_time
            if room < self.config.min_clip_duration:
                return EditResult.rejected("No room for the updated clip")
            clip = clip.evolve(duration=room)
        if not self._fits(clip.lane, clip.start_time, clip.duration, (clip.id,)):
            return EditResult.rejected(f"Lane {clip.lane} is occupied")
        if not self._valid_window(clip):
            return EditResult.rejected("Invalid trim window")

        self._checkpoint(description)
        self._clips[clip.id] = clip
        self._notify()
        return EditResult.ok(clip)

    def insertion_point(self, duration: float, selected_id: Optional[str], playhead: float) -> tuple[int, float]:
        """
        Where new material goes: appended after / prepended before the selected
        clip when the playhead sits on that edge and the lane is free there,
        otherwise on a fresh lane at the playhead.
        """
        default_lane = max(self.lanes) + 1 if self._clips else 0
        fallback = (default_lane, playhead)
        selected = self._clips.get(selected_id) if selected_id else None
        if selected is None:
            return fallback

        tolerance = self.config.insertion_tolerance
        if abs(playhead - selected.end_time) < tolerance:
            if self._fits(selected.lane, selected.end_time, duration, (selected.id,)):
                return (selected.lane, selected.end_time)

        if abs(playhead - selected.start_time) < tolerance:
            start = selected.start_time - duration
            if start >= 0 and self._fits(selected.lane, start, duration, (selected.id,)):
                return (selected.lane, start)

        return fallback

    # --- Moving ---

    def free_gaps(self, lane: int, exclude: tuple[str, ...] = ()) -> list[Gap]:
        """Complement of the lane's occupied intervals, ending with an unbounded gap."""
        gaps = []
        last_end = 0.0
        for clip in self.clips_in_lane(lane, exclude):
            if clip.start_time > last_end:
                gaps.append(Gap(last_end, clip.start_time))
            last_end = max(last_end, clip.end_time)
        gaps.append(Gap(last_end, math.inf))
        return gaps

    def lane_at(self, y: float, lane_height: Optional[float] = None) -> int:
        """Lane under a vertical position."""
        height = lane_height or self.config.lane_height_px
        return max(0, int(math.floor(y / height)))

    def _gap_accepts(self, gaps: list[Gap], start: float, duration: float) -> bool:
        eps = self.config.fit_epsilon
        return any(
            g.holds(duration, self.config.gap_tolerance)
            and g.start - eps <= start <= g.end - duration + eps
            for g in gaps
        )

    def snap_candidates(self, clip: Clip, lane: int, gaps: list[Gap], proposed: float,
                        playhead: float, zoom: float) -> list[float]:
        """Times a dragged clip's start or end edge may snap to."""
        candidates = [0.0, playhead]
        for gap in gaps:
            candidates.append(gap.start)
            if gap.end != math.inf:
                candidates.append(gap.end - clip.duration)
        for other in self._clips.values():
            if other.id != clip.id and abs(other.lane - lane) == 1:
                candidates.extend((other.start_time, other.end_time))
        if zoom > self.config.beat_snap_zoom:
            beat = 60.0 / self.project_tempo
            candidates.append(round(proposed / beat) * beat)
        return candidates

    def resolve_drop(
        self,
        clip_id: str,
        raw_start: float,
        lane: int,
        playhead: float = 0.0,
        zoom: float = ARRANGEMENT_CONFIG.default_zoom
    ) -> Optional[DropTarget]:
        """
        Legal landing spot for a dragged clip, or None if the lane has no gap
        large enough.

        The raw start is clamped into the fitting gap that displaces it least,
        then snapped to the closest candidate within the pixel threshold that
        still fits a gap.
        """
        clip = self.get(clip_id)
        lane = max(0, lane)
        gaps = self.free_gaps(lane, (clip.id,))
        tolerance = self.config.gap_tolerance
        eps = self.config.fit_epsilon

        best: Optional[float] = None
        min_displacement = math.inf
        for gap in gaps:
            if not gap.holds(clip.duration, tolerance):
                continue
            clamped = gap.clamp(raw_start, clip.duration)
            # a gap within tolerance but shorter than the clip clamps to its start and would overlap
            if clamped + clip.duration > gap.end + eps:
                continue
            displacement = abs(clamped - raw_start)
            if displacement < min_displacement:
                min_displacement = displacement
                best = clamped

        if best is None:
            return None

        proposed = best
        snap_seconds = self.config.snap_threshold_px / zoom
        snapped: Optional[float] = None
        min_diff = math.inf
        for candidate in self.snap_candidates(clip, lane, gaps, proposed, playhead, zoom):
            diff_start = abs(proposed - candidate)
            if diff_start < snap_seconds and diff_start < min_diff:
                if self._gap_accepts(gaps, candidate, clip.duration):
                    snapped, min_diff = candidate, diff_start

            diff_end = abs(proposed + clip.duration - candidate)
            if diff_end < snap_seconds and diff_end < min_diff:
                aligned = candidate - clip.duration
                if self._gap_accepts(gaps, aligned, clip.duration):
                    snapped, min_diff = aligned, diff_end

        if snapped is not None:
            return DropTarget(lane, max(0.0, snapped), snapped=True)
        return DropTarget(lane, proposed)

    def move_clip(
        self,
        clip_id: str,
        raw_start: float,
        lane: Optional[int] = None,
        playhead: float = 0.0,
        zoom: float = ARRANGEMENT_CONFIG.default_zoom
    ) -> EditResult:
        """Drop a clip near `raw_start` on `lane` (its own lane if None)."""
        clip = self.get(clip_id)
        target_lane = clip.lane if lane is None else lane
        target = self.resolve_drop(clip_id, raw_start, target_lane, playhead, zoom)
        if target is None:
            logger.debug("Move rejected: no gap for %r in lane %d", clip, target_lane)
            return EditResult.rejected(f"No room in lane {target_lane}")

        moved = clip.evolve(start_time=target.start_time, lane=target.lane)
        self._checkpoint(f"Move {clip.name}")
        self._clips[clip.id] = moved
        self._notify()
        return EditResult.ok(moved)

    # --- Trimming ---

    def trim_clip_start(self, clip_id: str, delta: float) -> EditResult:
        """
        Move the start edge by `delta` seconds; trim_start and duration change
        by equal and opposite amounts.
        """
        clip = self.get(clip_id)
        change = delta
        if clip.trim_start + change < 0:
            change = -clip.trim_start
        if clip.duration - change < self.config.min_clip_duration:
            change = clip.duration - self.config.min_clip_duration
        if clip.start_time + change < 0:
            change = -clip.start_time

        previous_end = max(
            (c.end_time for c in self.clips_in_lane(clip.lane, (clip.id,))
             if c.end_time <= clip.start_time + self.config.fit_epsilon),
            default=0.0
        )
        if clip.start_time + change < previous_end:
            change = previous_end - clip.start_time

        trimmed = clip.evolve(
            start_time=clip.start_time + change,
            trim_start=clip.trim_start + change,
            duration=clip.duration - change,
        )
        return self._commit_trim(clip, trimmed)

    def trim_clip_end(self, clip_id: str, delta: float) -> EditResult:
        """Move the end edge by `delta` seconds; only duration changes."""
        clip = self.get(clip_id)
        change = delta
        if clip.duration + change < self.config.min_clip_duration:
            change = self.config.min_clip_duration - clip.duration
        if not clip.is_looping and clip.trim_start + clip.duration + change > clip.buffer_duration:
            change = clip.buffer_duration - (clip.trim_start + clip.duration)

        next_start = min(
            (c.start_time for c in self.clips_in_lane(clip.lane, (clip.id,))
             if c.start_time >= clip.end_time - self.config.fit_epsilon),
            default=math.inf
        )
        if clip.end_time + change > next_start:
            change = next_start - clip.end_time

        trimmed = clip.evolve(duration=clip.duration + change)
        return self._commit_trim(clip, trimmed)

    def _commit_trim(self, clip: Clip, trimmed: Clip) -> EditResult:
        if trimmed == clip:
            return EditResult.ok(clip)
        if not self._valid_window(trimmed):
            return EditResult.rejected("Trim would leave an invalid window")
        self._checkpoint(f"Trim {clip.name}")
        self._clips[clip.id] = trimmed
        self._notify()
        return EditResult.ok(trimmed)

    def crop_clip(self, clip_id: str, start: float, end: float) -> EditResult:
        """Keep only the timeline range [start, end) of a clip."""
        clip = self.get(clip_id)
        rel_start = max(0.0, start - clip.start_time)
        rel_end = min(clip.duration, end - clip.start_time)
        if rel_end - rel_start < self.config.min_clip_duration:
            return EditResult.rejected("Selection does not cover the clip")
        cropped = clip.evolve(
            start_time=clip.start_time + rel_start,
            trim_start=clip.trim_start + rel_start,
            duration=rel_end - rel_start,
        )
        self._checkpoint(f"Crop {clip.name}")
        self._clips[clip.id] = cropped
        self._notify()
        return EditResult.ok(cropped)

    # --- Splitting ---

    def split_clip(self, clip_id: str, playhead: float) -> EditResult:
        """
        Cut a clip in two at the playhead.
        Rejected unless the playhead is strictly inside the clip, away from its edges.
        """
        clip = self.get(clip_id)
        if not clip.contains(playhead, self.config.split_edge_tolerance):
            logger.debug("Split rejected: playhead %.3f outside %r", playhead, clip)
            return EditResult.rejected("Place the playhead inside the clip")

        rel = playhead - clip.start_time
        name_left, name_right = split_names(clip.name, [c.name for c in self._clips.values()])

        left = clip.evolve(
            id=new_clip_id(), name=name_left, duration=rel, crossfade_lineage=None
        )
        right = clip.evolve(
            id=new_clip_id(),
            name=name_right,
            start_time=clip.start_time + rel,
            trim_start=clip.trim_start + rel,
            duration=clip.duration - rel,
            crossfade_lineage=None,
        )

        self._checkpoint(f"Split {clip.name}")
        self._replace(clip.id, [left, right])
        self._notify()
        logger.info("Split %s into %s / %s", clip.name, name_left, name_right)
        return EditResult.ok(left, right)

    # --- Crossfade merge / restore ---

    def find_crossfade_pair(self, lane: int, boundary: float) -> Optional[tuple[Clip, Clip]]:
        """The clip ending and the clip starting at `boundary` in a lane, if both exist."""
        tolerance = self.config.crossfade_boundary_tolerance
        lane_clips = self.clips_in_lane(lane)
        left = next((c for c in lane_clips if abs(c.end_time - boundary) < tolerance), None)
        right = next(
            (c for c in lane_clips if abs(c.start_time - boundary) < tolerance and c is not left),
            None
        )
        if left is None or right is None:
            return None
        return left, right

    @staticmethod
    def crossfade_overlap(left: Clip, right: Clip, duration: float) -> float:
        """Requested crossfade length, limited to the shorter clip."""
        return min(duration, left.duration, right.duration)

    @staticmethod
    def build_crossfade_clip(left: Clip, right: Clip, overlap: float) -> Clip:
        """Render the merged clip of an adjacent pair (DSP; no state change)."""
        merged = merge_buffers(
            render_clip(left, apply_gain=False),
            render_clip(right, apply_gain=False),
            overlap
        )
        return Clip.from_buffer(
            merged,
            name=f"Merged ({left.name} + {right.name})",
            lane=left.lane,
            start_time=left.start_time,
            tempo_hint=left.tempo_hint if left.tempo_hint == right.tempo_hint else None,
            crossfade_lineage=CrossfadeLineage(left=left, right=right, duration=overlap),
        )

    def commit_merge(self, merged: Clip) -> EditResult:
        """Swap a merged clip in for the two originals held in its lineage."""
        lineage = merged.crossfade_lineage
        if lineage is None:
            return EditResult.rejected("Clip has no crossfade lineage")
        current_left = self._clips.get(lineage.left.id)
        current_right = self._clips.get(lineage.right.id)
        if current_left != lineage.left or current_right != lineage.right:
            return EditResult.rejected("Clips changed while the crossfade was rendering")

        self._checkpoint(f"Crossfade {lineage.left.name} + {lineage.right.name}")
        self._replace(lineage.left.id, [merged])
        del self._clips[lineage.right.id]
        self._notify()
        return EditResult.ok(merged)

    def crossfade_merge(
        self,
        lane: int,
        boundary: float,
        duration: float = ARRANGEMENT_CONFIG.default_crossfade
    ) -> EditResult:
        """Merge the two clips meeting at `boundary` with a linear crossfade."""
        pair = self.find_crossfade_pair(lane, boundary)
        if pair is None:
            return EditResult.rejected("No adjacent clips meet at the playhead")
        if duration <= 0:
            return EditResult.rejected("Crossfade duration must be positive")
        left, right = pair
        overlap = self.crossfade_overlap(left, right, duration)
        return self.commit_merge(self.build_crossfade_clip(left, right, overlap))

    def restore_crossfade(self, clip_id: str) -> EditResult:
        """Put back the two original clips of a merged clip, exactly as they were."""
        merged = self.get(clip_id)
        lineage = merged.crossfade_lineage
        if lineage is None:
            return EditResult.rejected("Clip was not created by a crossfade")

        for original in (lineage.left, lineage.right):
            if original.id in self._clips:
                return EditResult.rejected(f"Clip id {original.id} already in use")
            if not self._fits(original.lane, original.start_time, original.duration, (merged.id,)):
                return EditResult.rejected(f"Lane {original.lane} is no longer free for {original.name}")

        self._checkpoint(f"Restore {merged.name}")
        self._replace(merged.id, [lineage.left, lineage.right])
        self._notify()
        return EditResult.ok(lineage.left, lineage.right)

    # --- Gain and automation ---

    def _update(self, clip: Clip, description: str, **changes) -> EditResult:
        updated = clip.evolve(**changes)
        self._checkpoint(description)
        self._clips[clip.id] = updated
        self._notify()
        return EditResult.ok(updated)

    def set_volume(self, clip_id: str, volume: float) -> EditResult:
        clip = self.get(clip_id)
        volume = min(max(0.0, volume), AUDIO_CONFIG.max_gain)
        return self._update(clip, f"Volume {clip.name}", volume=volume)

    def set_muted(self, clip_id: str, muted: bool) -> EditResult:
        clip = self.get(clip_id)
        return self._update(clip, f"{'Mute' if muted else 'Unmute'} {clip.name}", muted=muted)

    def set_looping(self, clip_id: str, looping: bool) -> EditResult:
        clip = self.get(clip_id)
        duration = clip.duration
        if not looping:
            duration = min(duration, clip.buffer_duration - clip.trim_start)
            if duration < self.config.min_clip_duration:
                return EditResult.rejected("Trim window lies outside the buffer")
        return self._update(clip, f"Loop {clip.name}", is_looping=looping, duration=duration)

    def enable_automation(self, clip_id: str) -> EditResult:
        """Start a flat automation curve across the trim window."""
        clip = self.get(clip_id)
        if clip.volume_automation:
            return EditResult.ok(clip)
        start, end = clip.window
        points = (AutomationPoint(start, 1.0), AutomationPoint(end, 1.0))
        return self._update(clip, f"Automation {clip.name}", volume_automation=points)

    def _clamped_point(self, clip: Clip, time: float, value: float) -> AutomationPoint:
        start, end = clip.window
        return AutomationPoint(min(max(time, start), end), min(max(value, 0.0), 1.0))

    def add_automation_point(self, clip_id: str, time: float, value: float) -> EditResult:
        clip = self.get(clip_id)
        point = self._clamped_point(clip, time, value)
        points = list(clip.volume_automation)
        bisect.insort(points, point, key=lambda p: p.time)
        return self._update(clip, f"Automation {clip.name}", volume_automation=tuple(points))

    def move_automation_point(self, clip_id: str, index: int, time: float, value: float) -> EditResult:
        clip = self.get(clip_id)
        if not 0 <= index < len(clip.volume_automation):
            return EditResult.rejected(f"No automation point {index}")
        points = list(clip.volume_automation)
        points[index] = self._clamped_point(clip, time, value)
        points.sort(key=lambda p: p.time)
        return self._update(clip, f"Automation {clip.name}", volume_automation=tuple(points))

    def remove_automation_point(self, clip_id: str, index: int) -> EditResult:
        clip = self.get(clip_id)
        if not 0 <= index < len(clip.volume_automation):
            return EditResult.rejected(f"No automation point {index}")
        points = clip.volume_automation[:index] + clip.volume_automation[index + 1:]
        return self._update(clip, f"Automation {clip.name}", volume_automation=points)

    def reset(self, clips: tuple[Clip, ...] | list[Clip] = ()) -> None:
        """Replace every clip (e.g. on project load) and forget the history."""
        fresh = Arrangement(clips, max_history=self.history.max_depth, config=self.config)
        self._clips = fresh._clips
        self.history.clear()
        self._notify()
