"""
AudioEngine: the single entry point for an arrangement session.

Edits are synchronous and go straight to the Arrangement. Anything that
touches samples (decoding, effect renders, crossfade merges, generated clips,
export) is awaited as an offline render job and committed only when it finishes.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Iterable, Optional

from .arrangement import Arrangement
from .clip import Clip
from .codec import ExportFormat, decode_audio, encode_audio
from .config import ARRANGEMENT_CONFIG, AUDIO_CONFIG
from .generators import generate_drum_beat, generate_synth_sequence
from .jobs import RenderJobRunner
from .mixer import mixdown
from .persistence import project_from_record, project_to_record
from .pipeline import apply_effects, disable_effect, enable_effect, retag_bpm, toggle_effect
from .playback import AudioContext, PlaybackController
from .tempo import TEMPO_UNKNOWN, estimate_tempo
from .types import ClipsListener, CodecError, EditResult

logger = logging.getLogger("PyArranger")

IMPORT_NAME_LENGTH = 15


def _decode_imports(files: list[tuple[str, bytes]]) -> list[tuple[str, Any, int]]:
    """Decode and analyse a batch; undecodable entries are skipped."""
    decoded = []
    for name, raw in files:
        try:
            buffer = decode_audio(raw)
        except CodecError as e:
            logger.warning("Skipping %s: %s", name, e)
            continue
        decoded.append((name, buffer, estimate_tempo(buffer)))
    return decoded


def _render_mix(clips: tuple[Clip, ...], fmt: ExportFormat, samplerate: Optional[int]) -> Optional[bytes]:
    mixed = mixdown(clips, target_samplerate=samplerate)
    if mixed is None:
        return None
    return encode_audio(mixed, fmt)


class AudioEngine:
    """
    Owns the arrangement, the render job runner, the playhead and zoom, and
    playback. The audio context is created on first playback unless one is injected.
    """

    def __init__(
        self,
        arrangement: Optional[Arrangement] = None,
        jobs: Optional[RenderJobRunner] = None,
        context: Optional[AudioContext] = None
    ) -> None:
        self.arrangement = arrangement or Arrangement()
        self.jobs = jobs or RenderJobRunner()
        self._context = context
        self._playback: Optional[PlaybackController] = None
        self._rendering: set[str] = set()
        self.playhead = 0.0
        self.zoom = ARRANGEMENT_CONFIG.default_zoom
        self.selected_id: Optional[str] = None

    # --- State ---

    @property
    def clips(self) -> tuple[Clip, ...]:
        return self.arrangement.clips

    @property
    def context(self) -> AudioContext:
        if self._context is None:
            self._context = AudioContext.shared()
        return self._context

    @property
    def playback(self) -> PlaybackController:
        if self._playback is None:
            self._playback = PlaybackController(
                self.context,
                lambda: self.arrangement.clips,
                on_position_changed=self._on_position_changed
            )
        return self._playback

    @property
    def is_playing(self) -> bool:
        return self._playback is not None and self._playback.is_playing

    def subscribe(self, listener: ClipsListener) -> Callable[[], None]:
        return self.arrangement.subscribe(listener)

    def select(self, clip_id: Optional[str]) -> None:
        if clip_id is not None:
            self.arrangement.get(clip_id)
        self.selected_id = clip_id

    def set_zoom(self, zoom: float) -> float:
        cfg = ARRANGEMENT_CONFIG
        self.zoom = min(max(zoom, cfg.min_zoom), cfg.max_zoom)
        return self.zoom

    def is_rendering(self, clip_id: str) -> bool:
        return clip_id in self._rendering

    def _busy(self, clip_id: str) -> Optional[EditResult]:
        self.arrangement.get(clip_id)
        if clip_id in self._rendering:
            logger.info("Edit rejected: clip %s is rendering", clip_id)
            return EditResult.rejected("Clip is still rendering")
        return None

    # --- Importing ---

    def _place_batch(self, items: list[tuple[str, Any, Optional[float]]], **clip_kwargs: Any) -> EditResult:
        """Build clips for (name, buffer, tempo) items at the insertion point, one lane each."""
        if not items:
            return EditResult.rejected("Nothing to import")
        base_lane, start = self.arrangement.insertion_point(
            items[0][1].duration, self.selected_id, self.playhead
        )
        clips: list[Clip] = []
        lane = base_lane
        for name, buffer, tempo in items:
            candidate = Clip.from_buffer(buffer, name=name, start_time=start, tempo_hint=tempo, **clip_kwargs)
            while not self._lane_free(candidate.evolve(lane=lane), clips):
                lane += 1
            clips.append(candidate.evolve(lane=lane))
            lane += 1

        result = self.arrangement.add_clips(clips)
        if result:
            self.selected_id = clips[-1].id
        return result

    def _lane_free(self, clip: Clip, staged: list[Clip]) -> bool:
        if any(c.lane == clip.lane and c.overlaps(clip) for c in staged):
            return False
        return not any(
            c.overlaps(clip) for c in self.arrangement.clips_in_lane(clip.lane)
        )

    async def import_files(self, files: Iterable[tuple[str, bytes]]) -> EditResult:
        """
        Decode (name, bytes) pairs and place them as new clips in one undoable step.
        Files that cannot be decoded are skipped; detected tempo is added to the name.
        """
        decoded = await self.jobs.run(_decode_imports, list(files), name="import")
        items = []
        for name, buffer, bpm in decoded:
            label = name[:IMPORT_NAME_LENGTH]
            tempo = None
            if bpm != TEMPO_UNKNOWN:
                tempo = float(bpm)
                label = retag_bpm(label, bpm)
            items.append((label, buffer, tempo))
        if not items:
            return EditResult.rejected("No audio could be decoded")
        logger.info("Imported %d file(s)", len(items))
        return self._place_batch(items)

    async def add_beat(self, style: str, bpm: Optional[float] = None, bars: int = 4) -> EditResult:
        """Generate a looping drum clip at the project tempo unless `bpm` is given."""
        bpm = bpm or self.arrangement.project_tempo
        buffer = await self.jobs.run(generate_drum_beat, style, bpm, bars, name="beat")
        return self._place_generated(f"{style} Beat", buffer, bpm)

    async def add_synth(
        self,
        preset: str,
        pattern: str,
        root: str = 'C',
        scale: str = 'Minor',
        bpm: Optional[float] = None,
        bars: int = 4
    ) -> EditResult:
        """Generate a looping synth clip, e.g. add_synth('Analog Bass', 'Bassline', 'A', 'Minor')."""
        bpm = bpm or self.arrangement.project_tempo
        buffer = await self.jobs.run(
            generate_synth_sequence, preset, pattern, root, scale, bpm, bars, name="synth"
        )
        key = f"{root}{'m' if scale == 'Minor' else ''}"
        return self._place_generated(f"{preset} {pattern} {key}", buffer, bpm)

    def _place_generated(self, label: str, buffer: Any, bpm: float) -> EditResult:
        name = f"{label} ({int(round(bpm))} BPM)"
        return self._place_batch(
            [(name, buffer, float(bpm))],
            is_looping=True,
            volume=AUDIO_CONFIG.beat_clip_gain
        )

    # --- Arrangement edits ---

    def move_clip(self, clip_id: str, raw_start: float, lane: Optional[int] = None) -> EditResult:
        busy = self._busy(clip_id)
        if busy:
            return busy
        return self.arrangement.move_clip(clip_id, raw_start, lane, self.playhead, self.zoom)

    def trim_clip(self, clip_id: str, edge: str, delta: float) -> EditResult:
        """Drag the 'start' or 'end' edge of a clip by `delta` seconds."""
        busy = self._busy(clip_id)
        if busy:
            return busy
        if edge == 'start':
            return self.arrangement.trim_clip_start(clip_id, delta)
        if edge == 'end':
            return self.arrangement.trim_clip_end(clip_id, delta)
        raise ValueError(f"Unknown trim edge: {edge!r}")

    def crop_clip(self, clip_id: str, start: float, end: float) -> EditResult:
        busy = self._busy(clip_id)
        if busy:
            return busy
        return self.arrangement.crop_clip(clip_id, start, end)

    def split_at_playhead(self, clip_id: Optional[str] = None) -> EditResult:
        clip_id = clip_id or self.selected_id
        if clip_id is None:
            return EditResult.rejected("No clip selected")
        busy = self._busy(clip_id)
        if busy:
            return busy
        result = self.arrangement.split_clip(clip_id, self.playhead)
        if result:
            self.selected_id = result.clips[1].id
        return result

    async def crossfade_at_playhead(self, duration: float = ARRANGEMENT_CONFIG.default_crossfade) -> EditResult:
        """
        Merge the two clips that meet at the playhead (selected lane first).
        The merge is rendered as a job; both clips count as rendering until it commits.
        """
        if duration <= 0:
            return EditResult.rejected("Crossfade duration must be positive")
        lanes = self.arrangement.lanes
        selected = self.arrangement.find(self.selected_id) if self.selected_id else None
        if selected is not None:
            lanes = [selected.lane] + [lane for lane in lanes if lane != selected.lane]

        pair = None
        for lane in lanes:
            pair = self.arrangement.find_crossfade_pair(lane, self.playhead)
            if pair is not None:
                break
        if pair is None:
            return EditResult.rejected("No adjacent clips meet at the playhead")

        left, right = pair
        if left.id in self._rendering or right.id in self._rendering:
            return EditResult.rejected("Clip is still rendering")
        overlap = Arrangement.crossfade_overlap(left, right, duration)

        self._rendering.update((left.id, right.id))
        try:
            merged = await self.jobs.run(
                Arrangement.build_crossfade_clip, left, right, overlap, name="crossfade"
            )
        finally:
            self._rendering.difference_update((left.id, right.id))

        result = self.arrangement.commit_merge(merged)
        if result:
            self.selected_id = merged.id
        return result

    def restore_crossfade(self, clip_id: Optional[str] = None) -> EditResult:
        clip_id = clip_id or self.selected_id
        if clip_id is None:
            return EditResult.rejected("No clip selected")
        busy = self._busy(clip_id)
        if busy:
            return busy
        result = self.arrangement.restore_crossfade(clip_id)
        if result:
            self.selected_id = result.clip.id
        return result

    def set_volume(self, clip_id: str, volume: float) -> EditResult:
        return self.arrangement.set_volume(clip_id, volume)

    def set_muted(self, clip_id: str, muted: bool) -> EditResult:
        return self.arrangement.set_muted(clip_id, muted)

    def delete_clip(self, clip_id: Optional[str] = None) -> EditResult:
        clip_id = clip_id or self.selected_id
        if clip_id is None:
            return EditResult.rejected("No clip selected")
        busy = self._busy(clip_id)
        if busy:
            return busy
        result = self.arrangement.remove_clip(clip_id)
        if self.selected_id == clip_id:
            self.selected_id = None
        return result

    def undo(self) -> bool:
        self.stop()
        return self.arrangement.undo()

    def redo(self) -> bool:
        self.stop()
        return self.arrangement.redo()

    # --- Effects ---

    async def _render(self, clip_id: str, change: Callable[..., Any], *args: Any, **params: Any) -> EditResult:
        busy = self._busy(clip_id)
        if busy:
            return busy
        clip = self.arrangement.get(clip_id)
        effects = change(clip.active_effects, *args, **params)

        self._rendering.add(clip_id)
        try:
            updated = await self.jobs.run(apply_effects, clip, effects, name=f"effects:{clip_id}")
        finally:
            self._rendering.discard(clip_id)

        if self.arrangement.find(clip_id) != clip:
            logger.info("Discarding render for %s: clip changed meanwhile", clip_id)
            return EditResult.rejected("Clip changed while rendering")
        return self.arrangement.replace_clip(updated, f"Effects on {clip.name}")

    async def apply_effect(self, clip_id: str, name: str, **params: Any) -> EditResult:
        """Enable an effect stage and re-render the clip from its source."""
        return await self._render(clip_id, enable_effect, name, **params)

    async def remove_effect(self, clip_id: str, name: str) -> EditResult:
        return await self._render(clip_id, disable_effect, name)

    async def toggle_effect(self, clip_id: str, name: str) -> EditResult:
        return await self._render(clip_id, toggle_effect, name)

    # --- Output ---

    async def export(self, fmt: "str | ExportFormat" = ExportFormat.WAV, samplerate: Optional[int] = None) -> Optional[bytes]:
        """Mix the whole arrangement and encode it. None when there is nothing to export."""
        fmt = ExportFormat.parse(fmt)
        data = await self.jobs.run(_render_mix, self.arrangement.clips, fmt, samplerate, name="export")
        if data is not None:
            logger.info("Exported %s (%d bytes)", fmt.name, len(data))
        return data

    def save_project(self) -> dict[str, Any]:
        return project_to_record(self.arrangement.clips, playhead=self.playhead, zoom=self.zoom)

    async def load_project(self, record: dict[str, Any]) -> None:
        """Replace the session with a saved project; history starts empty."""
        clips = await self.jobs.run(project_from_record, record, name="load")
        self.stop()
        self.arrangement.reset(clips)
        self.playhead = float(record.get('playhead', 0.0))
        self.zoom = float(record.get('zoom', ARRANGEMENT_CONFIG.default_zoom))
        self.selected_id = None
        logger.info("Loaded project with %d clips", len(clips))

    # --- Transport ---

    def _on_position_changed(self, seconds: float) -> None:
        self.playhead = seconds

    def play(self) -> bool:
        return self.playback.play(self.playhead)

    def stop(self) -> None:
        if self._playback is not None:
            self._playback.stop()

    def seek(self, seconds: float) -> None:
        self.playhead = max(0.0, seconds)
        if self._playback is not None:
            self._playback.seek(self.playhead)

    def close(self) -> None:
        self.stop()
        self.jobs.shutdown(wait=False)
