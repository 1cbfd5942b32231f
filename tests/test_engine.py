"""
Tests for the AudioEngine facade.
"""
import asyncio
import pytest

from pyarranger.core import effects_basic as fx
from pyarranger.core.arrangement import Arrangement
from pyarranger.core.audio_engine import AudioEngine
from pyarranger.core.codec import decode_audio, encode_audio
from pyarranger.core.playback import AudioContext
from pyarranger.core.types import EffectError

from conftest import SR, constant, make_clip, tone


class FakeStream:
    def __init__(self, **kwargs):
        self.callback = kwargs['callback']

    def start(self):
        pass

    def stop(self):
        pass

    def close(self):
        pass


@pytest.fixture
def engine():
    engine = AudioEngine(context=AudioContext(samplerate=SR, stream_factory=FakeStream))
    yield engine
    engine.close()


def wav(buffer):
    return encode_audio(buffer, "wav")


class TestImport:

    def test_batch_import_is_one_undo_step(self, engine):
        files = [("first.wav", wav(tone(1.0))), ("second.wav", wav(tone(2.0)))]
        result = asyncio.run(engine.import_files(files))
        assert result
        lanes = sorted(c.lane for c in engine.clips)
        assert lanes == [0, 1]
        assert all(c.start_time == 0.0 for c in engine.clips)
        assert engine.selected_id == result.clips[-1].id
        assert len(engine.arrangement.history) == 1
        engine.undo()
        assert engine.clips == ()

    def test_undecodable_files_are_skipped(self, engine):
        files = [("junk.wav", b"not audio"), ("ok.wav", wav(tone(1.0)))]
        result = asyncio.run(engine.import_files(files))
        assert len(result.clips) == 1
        assert result.clip.name.startswith("ok.wav")

    def test_nothing_decodable_is_rejected(self, engine):
        result = asyncio.run(engine.import_files([("junk.wav", b"not audio")]))
        assert not result
        assert engine.clips == ()

    def test_long_names_are_shortened(self, engine):
        result = asyncio.run(engine.import_files([("a_very_long_file_name.wav", wav(tone(1.0)))]))
        assert result.clip.name.startswith("a_very_long_fil")
        assert "file_name" not in result.clip.name

    def test_tempo_is_detected(self, engine, click_track):
        result = asyncio.run(engine.import_files([("beat.wav", wav(click_track))]))
        clip = result.clip
        assert abs(clip.tempo_hint - 120) <= 3
        assert clip.name.endswith("BPM)")

    def test_import_appends_after_selection(self, engine):
        asyncio.run(engine.import_files([("one.wav", wav(tone(1.0)))]))
        engine.seek(1.0)
        result = asyncio.run(engine.import_files([("two.wav", wav(tone(1.0)))]))
        assert result.clip.lane == 0
        assert result.clip.start_time == pytest.approx(1.0)


class TestBeat:

    def test_beat_clip_defaults(self, engine):
        result = asyncio.run(engine.add_beat('Rock', bars=1))
        clip = result.clip
        assert clip.is_looping
        assert clip.volume == 0.8
        assert clip.tempo_hint == 120.0
        assert clip.name == "Rock Beat (120 BPM)"
        assert clip.duration == pytest.approx(2.0)

    def test_synth_clip_defaults(self, engine):
        result = asyncio.run(engine.add_synth('Pluck', 'Arpeggio', 'A', 'Minor', bpm=100, bars=1))
        clip = result.clip
        assert clip.name == "Pluck Arpeggio Am (100 BPM)"
        assert clip.is_looping
        assert clip.volume == 0.8
        assert clip.tempo_hint == 100.0
        assert clip.duration == pytest.approx(2.4)

    def test_unknown_synth_preset_raises(self, engine):
        with pytest.raises(ValueError):
            asyncio.run(engine.add_synth('Theremin', 'Chords'))
        assert engine.clips == ()


class TestEffects:

    def setup_clip(self, engine, seconds=2.0):
        clip = make_clip(seconds)
        engine.arrangement.add_clip(clip)
        return clip

    def test_speed_change_commits(self, engine):
        clip = self.setup_clip(engine)
        result = asyncio.run(engine.apply_effect(clip.id, 'speed', playback_rate=2.0))
        assert result
        updated = engine.arrangement.get(clip.id)
        assert updated.duration == pytest.approx(1.0)
        assert updated.active_effects.playback_rate == 2.0

    def test_remove_effect_restores(self, engine):
        clip = self.setup_clip(engine)
        asyncio.run(engine.apply_effect(clip.id, 'reverse'))
        asyncio.run(engine.remove_effect(clip.id, 'reverse'))
        restored = engine.arrangement.get(clip.id)
        assert restored.current_buffer.equals(clip.source_buffer)
        assert not restored.has_effects

    def test_toggle_effect(self, engine):
        clip = self.setup_clip(engine)
        asyncio.run(engine.toggle_effect(clip.id, 'normalize'))
        assert engine.arrangement.get(clip.id).active_effects.normalize

    def test_edits_rejected_while_rendering(self, engine):
        clip = self.setup_clip(engine)

        async def main():
            task = asyncio.create_task(engine.apply_effect(clip.id, 'reverse'))
            await asyncio.sleep(0)
            busy = engine.move_clip(clip.id, 3.0)
            rendering = engine.is_rendering(clip.id)
            return busy, rendering, await task

        busy, rendering, result = asyncio.run(main())
        assert rendering
        assert not busy
        assert result
        assert not engine.is_rendering(clip.id)

    def test_failed_render_leaves_clip(self, engine, monkeypatch):
        clip = self.setup_clip(engine)

        def boom(data):
            raise RuntimeError("stage failed")

        monkeypatch.setattr(fx, "apply_reverse", boom)
        with pytest.raises(EffectError):
            asyncio.run(engine.apply_effect(clip.id, 'reverse'))
        assert engine.arrangement.get(clip.id) == clip
        assert not engine.is_rendering(clip.id)


class TestEdits:

    def test_split_at_playhead_selects_right_half(self, engine):
        clip = make_clip(4.0, name="Take")
        engine.arrangement.add_clip(clip)
        engine.select(clip.id)
        engine.seek(1.0)
        result = engine.split_at_playhead()
        assert result
        assert engine.selected_id == result.clips[1].id

    def test_split_without_selection_rejected(self, engine):
        assert not engine.split_at_playhead()

    def test_crossfade_and_restore_at_playhead(self, engine):
        left = make_clip(3.0, buffer=constant(3.0, 0.5))
        right = make_clip(3.0, start=3.0, buffer=constant(3.0, 0.25))
        engine.arrangement.add_clips([left, right])
        engine.seek(3.0)
        merged = asyncio.run(engine.crossfade_at_playhead(1.0))
        assert merged.clip.duration == pytest.approx(5.0)
        assert engine.selected_id == merged.clip.id
        restored = engine.restore_crossfade()
        assert [c.id for c in restored.clips] == [left.id, right.id]

    def test_crossfade_renders_as_job(self, engine):
        left = make_clip(3.0)
        right = make_clip(3.0, start=3.0)
        engine.arrangement.add_clips([left, right])
        engine.seek(3.0)

        async def main():
            task = asyncio.create_task(engine.crossfade_at_playhead(1.0))
            await asyncio.sleep(0)
            rendering = (engine.is_rendering(left.id), engine.is_rendering(right.id))
            busy = engine.move_clip(right.id, 10.0)
            return rendering, busy, await task

        rendering, busy, result = asyncio.run(main())
        assert rendering == (True, True)
        assert not busy
        assert result
        assert len(engine.clips) == 1
        assert not engine.is_rendering(left.id)

    def test_crossfade_without_pair_rejected(self, engine):
        engine.arrangement.add_clip(make_clip(3.0))
        engine.seek(1.0)
        assert not asyncio.run(engine.crossfade_at_playhead(1.0))

    def test_trim_edges(self, engine):
        clip = make_clip(4.0)
        engine.arrangement.add_clip(clip)
        assert engine.trim_clip(clip.id, 'end', -1.0).clip.duration == pytest.approx(3.0)
        assert engine.trim_clip(clip.id, 'start', 1.0).clip.start_time == pytest.approx(1.0)
        with pytest.raises(ValueError):
            engine.trim_clip(clip.id, 'middle', 1.0)

    def test_delete_clears_selection(self, engine):
        clip = make_clip(1.0)
        engine.arrangement.add_clip(clip)
        engine.select(clip.id)
        assert engine.delete_clip()
        assert engine.selected_id is None

    def test_zoom_is_clamped(self, engine):
        assert engine.set_zoom(1000) == 300
        assert engine.set_zoom(1) == 10


class TestOutput:

    def test_export_mix(self, engine):
        engine.arrangement.add_clip(make_clip(1.0, buffer=constant(1.0, 0.25)))
        data = asyncio.run(engine.export("wav", samplerate=SR // 2))
        decoded = decode_audio(data)
        assert decoded.samplerate == SR // 2
        assert decoded.duration == pytest.approx(1.0)

    def test_export_empty(self, engine):
        assert asyncio.run(engine.export()) is None

    def test_save_and_load(self, engine):
        clip = make_clip(1.0, start=2.0, lane=1)
        engine.arrangement.add_clip(clip)
        engine.seek(0.5)
        record = engine.save_project()

        other = AudioEngine(arrangement=Arrangement(), context=engine.context)
        try:
            asyncio.run(other.load_project(record))
            assert other.playhead == 0.5
            assert len(other.clips) == 1
            assert other.clips[0].id == clip.id
            assert not other.arrangement.history.can_undo
        finally:
            other.close()


class TestTransport:

    def test_play_and_stop(self, engine):
        engine.arrangement.add_clip(make_clip(1.0))
        assert engine.play()
        assert engine.is_playing
        engine.stop()
        assert not engine.is_playing
        assert engine.playback.scheduled == 0

    def test_undo_stops_playback(self, engine):
        engine.arrangement.add_clip(make_clip(1.0))
        engine.play()
        engine.undo()
        assert not engine.is_playing
