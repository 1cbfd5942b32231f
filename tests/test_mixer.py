"""
Tests for clip rendering, mixdown and crossfade merge.
"""
import numpy as np
import pytest

from pyarranger.core.buffer import AudioBuffer
from pyarranger.core.clip import AutomationPoint
from pyarranger.core.crossfade import merge_buffers
from pyarranger.core.mixer import gain_envelope, mixdown, render_clip, resample

from conftest import SR, constant, make_clip


class TestRenderClip:

    def test_window_is_cut_from_buffer(self):
        ramp = AudioBuffer(np.arange(3 * SR, dtype=np.float32) / (3 * SR), SR)
        clip = make_clip(buffer=ramp).evolve(trim_start=1.0, duration=1.0)
        data = render_clip(clip).data
        assert len(data) == SR
        assert data[0, 0] == pytest.approx(ramp.data[SR, 0])

    def test_looping_clip_wraps(self):
        ramp = AudioBuffer(np.arange(SR, dtype=np.float32) / SR, SR)
        clip = make_clip(buffer=ramp, is_looping=True).evolve(duration=2.5)
        data = render_clip(clip).data
        assert len(data) == int(2.5 * SR)
        assert data[SR, 0] == data[0, 0]
        assert data[2 * SR + 10, 0] == pytest.approx(ramp.data[10, 0])

    def test_volume_is_applied(self):
        clip = make_clip(buffer=constant(1.0, 0.5), volume=0.5)
        assert np.allclose(render_clip(clip).data, 0.25)
        assert np.allclose(render_clip(clip, apply_gain=False).data, 0.5)


class TestAutomation:

    def test_linear_ramp(self):
        clip = make_clip(buffer=constant(1.0, 0.5)).evolve(
            volume_automation=(AutomationPoint(0.0, 0.0), AutomationPoint(1.0, 1.0))
        )
        data = render_clip(clip).data
        assert data[0, 0] == 0.0
        assert data[SR // 2, 0] == pytest.approx(0.25, abs=1e-3)

    def test_values_held_outside_points(self):
        clip = make_clip(buffer=constant(1.0, 1.0)).evolve(
            volume_automation=(AutomationPoint(0.5, 0.2), AutomationPoint(0.6, 0.8))
        )
        gain = gain_envelope(clip, SR, SR)
        assert gain[0] == pytest.approx(0.2)
        assert gain[-1] == pytest.approx(0.8)

    def test_points_follow_trim_offset(self):
        clip = make_clip(buffer=constant(3.0, 1.0)).evolve(
            trim_start=1.0, duration=1.0,
            volume_automation=(AutomationPoint(1.0, 0.0), AutomationPoint(2.0, 1.0))
        )
        gain = gain_envelope(clip, SR, SR)
        assert gain[0] == pytest.approx(0.0)
        assert gain[SR // 2] == pytest.approx(0.5, abs=1e-3)

    def test_volume_scales_envelope(self):
        clip = make_clip(buffer=constant(1.0, 1.0), volume=2.0).evolve(
            volume_automation=(AutomationPoint(0.0, 0.5), AutomationPoint(1.0, 0.5))
        )
        assert np.allclose(gain_envelope(clip, 10, SR), 1.0)


class TestMixdown:

    def test_empty_is_none(self):
        assert mixdown([]) is None

    def test_overlapping_lanes_sum(self):
        clips = [
            make_clip(buffer=constant(1.0, 0.25)),
            make_clip(buffer=constant(1.0, 0.25), lane=1),
        ]
        mixed = mixdown(clips)
        assert mixed.channels == 2
        assert np.allclose(mixed.data, 0.5)

    def test_output_is_clipped(self):
        clips = [
            make_clip(buffer=constant(1.0, 0.8)),
            make_clip(buffer=constant(1.0, 0.8), lane=1),
        ]
        assert np.max(mixdown(clips).data) == 1.0

    def test_muted_clips_are_silent_but_count_for_length(self):
        clips = [
            make_clip(buffer=constant(1.0, 0.5)),
            make_clip(buffer=constant(1.0, 0.5), start=2.0, muted=True),
        ]
        mixed = mixdown(clips)
        assert mixed.length == 3 * SR
        assert np.all(mixed.data[2 * SR:] == 0.0)

    def test_offset_and_length(self):
        mixed = mixdown([make_clip(buffer=constant(1.0, 0.5), start=2.0)])
        assert mixed.duration == pytest.approx(3.0)
        assert np.all(mixed.data[:2 * SR] == 0.0)
        assert np.allclose(mixed.data[2 * SR:], 0.5)

    def test_mono_clips_are_upmixed(self):
        mono = AudioBuffer(np.full(SR, 0.3, dtype=np.float32), SR)
        mixed = mixdown([make_clip(buffer=mono)])
        assert np.allclose(mixed.data[:, 1], 0.3)

    def test_runs_at_highest_rate(self):
        clips = [
            make_clip(buffer=constant(1.0, 0.1)),
            make_clip(buffer=constant(1.0, 0.1, sr=2 * SR), lane=1),
        ]
        assert mixdown(clips).samplerate == 2 * SR

    def test_target_rate_resamples(self):
        mixed = mixdown([make_clip(buffer=constant(2.0, 0.1))], target_samplerate=SR // 2)
        assert mixed.samplerate == SR // 2
        assert mixed.length == SR


class TestResample:

    def test_same_rate_is_identity(self):
        buffer = constant(1.0)
        assert resample(buffer, SR) is buffer

    def test_duration_is_kept(self):
        buffer = constant(1.0)
        assert resample(buffer, 44100).duration == pytest.approx(1.0)


class TestMergeBuffers:

    def test_duration_is_sum_minus_overlap(self):
        merged = merge_buffers(constant(3.0), constant(3.0), 1.0)
        assert merged.duration == pytest.approx(5.0)

    def test_overlap_clamped_to_shorter_buffer(self):
        merged = merge_buffers(constant(3.0), constant(0.5), 2.0)
        assert merged.duration == pytest.approx(3.0)

    def test_rates_and_channels_are_matched(self):
        right = AudioBuffer(np.full(2 * SR, 0.2, dtype=np.float32), 2 * SR)
        merged = merge_buffers(constant(1.0), right, 0.5)
        assert merged.samplerate == SR
        assert merged.channels == 2
        assert merged.duration == pytest.approx(1.5)
