"""
Audio output for PyArranger.

AudioContext wraps the process-wide sounddevice output stream; the
PlaybackController schedules clips against it and mixes them block by block
in the stream callback.
"""
from __future__ import annotations
import logging
import threading
from typing import Any, Callable, ClassVar, Iterable, Optional
import numpy as np

from .clip import Clip
from .config import AUDIO_CONFIG, ContextState, PlaybackState
from .mixer import render_clip
from .types import PlaybackError

logger = logging.getLogger("PyArranger")

StreamFactory = Callable[..., Any]
BlockRenderer = Callable[[np.ndarray, int], None]


def sounddevice_stream(**kwargs: Any) -> Any:
    """Default stream factory. PortAudio is only loaded when audio is first needed."""
    import sounddevice as sd
    return sd.OutputStream(**kwargs)


class AudioContext:
    """
    Output device session.

    Created suspended; the stream is opened on the first resume(). Only one
    renderer is attached at a time, and it is called from the audio thread.
    """
    _shared: ClassVar[Optional["AudioContext"]] = None
    _shared_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        samplerate: int = AUDIO_CONFIG.default_samplerate,
        channels: int = AUDIO_CONFIG.playback_channels,
        blocksize: int = AUDIO_CONFIG.playback_blocksize,
        stream_factory: Optional[StreamFactory] = None
    ) -> None:
        self.samplerate = samplerate
        self.channels = channels
        self.blocksize = blocksize
        self._stream_factory = stream_factory or sounddevice_stream
        self._stream: Any = None
        self._state = ContextState.SUSPENDED
        self._renderer: Optional[BlockRenderer] = None

    @classmethod
    def shared(cls, **kwargs: Any) -> "AudioContext":
        """The process-wide context, created on first use."""
        with cls._shared_lock:
            if cls._shared is None or cls._shared.state == ContextState.CLOSED:
                cls._shared = cls(**kwargs)
            return cls._shared

    @property
    def state(self) -> ContextState:
        return self._state

    def attach(self, renderer: Optional[BlockRenderer]) -> None:
        self._renderer = renderer

    def _callback(self, outdata: np.ndarray, frames: int, time: object, status: object) -> None:
        outdata.fill(0)
        renderer = self._renderer
        if renderer is None:
            return
        try:
            renderer(outdata, frames)
        except Exception as e:
            logger.error("Playback callback error: %s", e, exc_info=True)
            outdata.fill(0)
        # Prevent digital clipping
        np.clip(outdata, -1.0, 1.0, out=outdata)

    def resume(self) -> None:
        if self._state == ContextState.CLOSED:
            raise PlaybackError("Audio context is closed")
        if self._state == ContextState.RUNNING:
            return
        try:
            if self._stream is None:
                self._stream = self._stream_factory(
                    samplerate=self.samplerate,
                    channels=self.channels,
                    blocksize=self.blocksize,
                    dtype='float32',
                    callback=self._callback
                )
            self._stream.start()
        except Exception as e:
            logger.error("Failed to start audio output: %s", e, exc_info=True)
            raise PlaybackError(f"Could not start audio output: {e}") from e
        self._state = ContextState.RUNNING
        logger.info("Audio context running at %d Hz", self.samplerate)

    def suspend(self) -> None:
        if self._state != ContextState.RUNNING:
            return
        try:
            self._stream.stop()
        except Exception as e:
            logger.warning("Error stopping stream: %s", e)
        self._state = ContextState.SUSPENDED
        logger.info("Audio context suspended")

    def close(self) -> None:
        if self._state == ContextState.CLOSED:
            return
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.warning("Error closing stream: %s", e)
            self._stream = None
        self._renderer = None
        self._state = ContextState.CLOSED
        logger.info("Audio context closed")


class ScheduledSource:
    """A clip rendered from the playhead on, waiting to be mixed."""
    __slots__ = ('clip_id', 'start_frame', 'data')

    def __init__(self, clip_id: str, start_frame: int, data: np.ndarray):
        self.clip_id = clip_id
        self.start_frame = start_frame
        self.data = data

    @property
    def end_frame(self) -> int:
        return self.start_frame + len(self.data)


class PlaybackController:
    """
    Plays the arrangement from the playhead.

    play() renders every non-muted clip's window (gain and automation applied,
    looping clips wrapped) into sources positioned on the output frame axis.
    stop() drops all sources before returning, so nothing scheduled keeps
    sounding afterwards.
    """
    __slots__ = (
        '_context', '_clips', '_lock', '_sources', '_frame', '_end_frame',
        '_state', '_on_position_changed', '_on_state_changed'
    )

    def __init__(
        self,
        context: AudioContext,
        clips: Callable[[], Iterable[Clip]],
        on_position_changed: Optional[Callable[[float], None]] = None,
        on_state_changed: Optional[Callable[[PlaybackState], None]] = None
    ) -> None:
        """
        Args:
            context: Output context to play through
            clips: Returns the clips to play (read at play() time)
            on_position_changed: Callback for position updates (seconds)
            on_state_changed: Callback for state changes
        """
        self._context = context
        self._clips = clips
        self._lock = threading.Lock()
        self._sources: list[ScheduledSource] = []
        self._frame = 0
        self._end_frame = 0
        self._state = PlaybackState.STOPPED
        self._on_position_changed = on_position_changed
        self._on_state_changed = on_state_changed

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state == PlaybackState.PLAYING

    @property
    def scheduled(self) -> int:
        """Number of sources still pending."""
        return len(self._sources)

    @property
    def current_time(self) -> float:
        return self._frame / self._context.samplerate

    def _set_state(self, state: PlaybackState) -> None:
        if self._state != state:
            self._state = state
            if self._on_state_changed:
                self._on_state_changed(state)

    def schedule(self, clips: Iterable[Clip], offset: float) -> list[ScheduledSource]:
        """Sources for every audible clip that ends after `offset` seconds."""
        sr = self._context.samplerate
        channels = self._context.channels
        origin = int(round(offset * sr))
        sources = []
        for clip in clips:
            if clip.muted or clip.end_time <= offset:
                continue
            data = render_clip(clip, sr).to_channels(channels).data
            start = int(round(clip.start_time * sr))
            skip = max(0, origin - start)
            if skip >= len(data):
                continue
            sources.append(ScheduledSource(clip.id, start + skip, data[skip:]))
        return sources

    def play(self, offset: float = 0.0) -> bool:
        """
        Start playback at `offset` seconds. A suspended context is resumed.

        Returns:
            True if anything was scheduled
        """
        self.stop(notify=False)
        sources = self.schedule(self._clips(), offset)
        if not sources:
            return False

        with self._lock:
            self._sources = sources
            self._frame = int(round(offset * self._context.samplerate))
            self._end_frame = max(s.end_frame for s in sources)

        self._context.attach(self.render_block)
        if self._context.state == ContextState.SUSPENDED:
            self._context.resume()
        self._set_state(PlaybackState.PLAYING)
        logger.info("Playback started at %.2fs with %d sources", offset, len(sources))
        return True

    def render_block(self, outdata: np.ndarray, frames: int) -> None:
        """Mix the pending sources into one output block (audio thread)."""
        finished = False
        with self._lock:
            chunk_start = self._frame
            chunk_end = chunk_start + frames
            for source in self._sources:
                lo = max(source.start_frame, chunk_start)
                hi = min(source.end_frame, chunk_end)
                if hi > lo:
                    segment = source.data[lo - source.start_frame:hi - source.start_frame]
                    outdata[lo - chunk_start:hi - chunk_start] += segment
            self._sources = [s for s in self._sources if s.end_frame > chunk_end]
            self._frame = chunk_end
            if self._sources == [] and chunk_end >= self._end_frame:
                finished = True

        if self._on_position_changed:
            self._on_position_changed(self.current_time)
        if finished and self._state == PlaybackState.PLAYING:
            self._set_state(PlaybackState.STOPPED)
            logger.info("Playback reached the end")

    def stop(self, notify: bool = True) -> None:
        """Drop every scheduled source; the position is kept."""
        with self._lock:
            self._sources = []
        if notify:
            self._set_state(PlaybackState.STOPPED)
            logger.info("Playback stopped at %.2fs", self.current_time)
        else:
            self._state = PlaybackState.STOPPED

    def seek(self, seconds: float) -> None:
        """Move to `seconds`, restarting playback there if it was running."""
        seconds = max(0.0, seconds)
        if self.is_playing:
            self.play(seconds)
        else:
            self._frame = int(round(seconds * self._context.samplerate))
        if self._on_position_changed:
            self._on_position_changed(seconds)
