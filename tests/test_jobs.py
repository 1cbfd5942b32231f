"""
Tests for render jobs and the drum and synth generators.
"""
import asyncio
import math
import threading
import numpy as np
import pytest

from pyarranger.core.generators import (
    BEAT_PATTERNS, SYNTH_PATTERNS, SYNTH_PRESETS, generate_drum_beat,
    generate_synth_sequence, scale_frequencies
)
from pyarranger.core.jobs import RenderJobRunner


@pytest.fixture
def runner():
    runner = RenderJobRunner()
    yield runner
    runner.shutdown()


class TestRenderJobRunner:

    def test_submit_returns_result(self, runner):
        job = runner.submit(sum, [1, 2, 3])
        assert job.result(timeout=5) == 6
        assert job.done
        assert job.name == "sum"

    def test_runs_off_the_calling_thread(self, runner):
        job = runner.submit(threading.get_ident)
        assert job.result(timeout=5) != threading.get_ident()

    def test_errors_propagate(self, runner):
        def fail():
            raise ValueError("bad render")
        with pytest.raises(ValueError):
            runner.submit(fail).result(timeout=5)
        assert runner.pending == 0

    def test_awaitable(self, runner):
        async def main():
            return await runner.run(pow, 2, 10, name="pow")
        assert asyncio.run(main()) == 1024

    def test_jobs_run_in_submission_order(self, runner):
        order = []
        jobs = [runner.submit(order.append, i) for i in range(5)]
        for job in jobs:
            job.result(timeout=5)
        assert order == [0, 1, 2, 3, 4]

    def test_shutdown_refuses_new_jobs(self):
        runner = RenderJobRunner()
        runner.shutdown()
        with pytest.raises(RuntimeError):
            runner.submit(sum, [])


class TestDrumBeat:

    @pytest.mark.parametrize("style", sorted(BEAT_PATTERNS))
    def test_length_is_whole_bars(self, style):
        buffer = generate_drum_beat(style, 120, bars=2, sr=8000)
        assert buffer.length == math.ceil(2 * 4 * 0.5 * 8000)
        assert buffer.channels == 2
        assert np.max(np.abs(buffer.data)) <= 1.0
        assert np.any(buffer.data != 0.0)

    def test_deterministic(self):
        a = generate_drum_beat('Rock', 100, bars=1, sr=8000)
        b = generate_drum_beat('Rock', 100, bars=1, sr=8000)
        assert a.equals(b)

    def test_unknown_style_falls_back_to_metronome(self):
        a = generate_drum_beat('Polka', 120, bars=1, sr=8000)
        b = generate_drum_beat('Metronome', 120, bars=1, sr=8000)
        assert a.equals(b)

    def test_rejects_bad_tempo(self):
        with pytest.raises(ValueError):
            generate_drum_beat('Rock', 0)


class TestSynthSequence:

    def test_scale_frequencies(self):
        a_major = scale_frequencies('A', 4, 'Major')
        assert len(a_major) == 8
        assert a_major[0] == pytest.approx(440.0, abs=0.1)
        assert a_major[-1] == pytest.approx(2 * a_major[0])
        c_minor = scale_frequencies('c', 2, 'Minor')
        assert c_minor[0] == pytest.approx(65.41, abs=0.01)
        assert c_minor[2] / c_minor[0] == pytest.approx(2 ** (3 / 12))

    def test_unknown_root_or_scale(self):
        with pytest.raises(ValueError):
            scale_frequencies('H', 4, 'Major')
        with pytest.raises(ValueError):
            scale_frequencies('C', 4, 'Dorian')

    @pytest.mark.parametrize("pattern", sorted(SYNTH_PATTERNS))
    def test_length_is_whole_bars(self, pattern):
        buffer = generate_synth_sequence('Analog Bass', pattern, 'E', 'Minor', 120, bars=2, sr=8000)
        assert buffer.length == math.ceil(2 * 4 * 0.5 * 8000)
        assert buffer.channels == 2
        assert np.max(np.abs(buffer.data)) <= 1.0
        assert np.any(buffer.data != 0.0)

    @pytest.mark.parametrize("preset", sorted(SYNTH_PRESETS))
    def test_every_preset_sounds(self, preset):
        buffer = generate_synth_sequence(preset, 'Arpeggio', 'C', 'Major', 120, bars=1, sr=8000)
        assert np.any(buffer.data != 0.0)
        assert np.all(np.isfinite(buffer.data))

    def test_seeded_patterns_repeat(self):
        a = generate_synth_sequence('Saw Lead', 'Random Melody', bars=1, sr=8000)
        b = generate_synth_sequence('Saw Lead', 'Random Melody', bars=1, sr=8000)
        assert a.equals(b)

    def test_one_shot_is_cut_at_the_end(self):
        # one bar at 240 BPM lasts 1 s, shorter than the 2 s note
        buffer = generate_synth_sequence('Strings', 'One Shot', bpm=240, bars=1, sr=8000)
        assert buffer.length == 8000

    def test_rejects_unknown_names(self):
        with pytest.raises(ValueError):
            generate_synth_sequence('Kazoo', 'Chords')
        with pytest.raises(ValueError):
            generate_synth_sequence('Pluck', 'Polyrhythm')
