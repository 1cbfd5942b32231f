"""
Tests for granular time-stretch.
"""
import math
import pytest
import numpy as np

from pyarranger.core.time_stretch import grain_window, granular_time_stretch

SR = 8000


def sine(seconds=2.0, freq=440.0, stereo=False):
    t = np.arange(int(seconds * SR)) / SR
    wave = (0.5 * np.sin(2 * np.pi * freq * t)).astype(np.float32)
    return np.column_stack((wave, wave)) if stereo else wave


def dominant_frequency(data):
    spectrum = np.abs(np.fft.rfft(data))
    freqs = np.fft.rfftfreq(len(data), 1.0 / SR)
    return freqs[np.argmax(spectrum)]


class TestGrainWindow:

    def test_ramps_up_and_down(self):
        window = grain_window(8, 4)
        assert window[0] == 0.0
        assert window[4] == 1.0
        assert np.all(window <= 1.0)
        assert window[-1] == pytest.approx(0.25)


class TestGranularStretch:

    def test_rate_one_returns_input(self):
        data = sine()
        assert granular_time_stretch(data, SR, 1.0) is data

    @pytest.mark.parametrize("rate", [0.5, 0.75, 1.25, 1.5, 2.0])
    def test_output_length_is_floor(self, rate):
        data = sine()
        result = granular_time_stretch(data, SR, rate)
        assert len(result) == math.floor(len(data) / rate)

    def test_stereo_shape(self):
        data = sine(stereo=True)
        result = granular_time_stretch(data, SR, 0.5)
        assert result.shape == (math.floor(len(data) / 0.5), 2)

    def test_result_is_normalized(self):
        result = granular_time_stretch(sine() * 0.1, SR, 0.8)
        assert np.max(np.abs(result)) == pytest.approx(0.98, abs=1e-4)

    @pytest.mark.parametrize("rate", [0.5, 2.0])
    def test_pitch_is_preserved(self, rate):
        result = granular_time_stretch(sine(4.0), SR, rate)
        assert abs(dominant_frequency(result) - 440.0) < 15.0

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            granular_time_stretch(sine(), SR, -1.0)
