"""
Tempo (BPM) estimation by autocorrelation of an onset envelope.
"""
from __future__ import annotations
import logging
import math
from typing import NamedTuple
import numpy as np

from .buffer import AudioBuffer
from .config import TEMPO_CONFIG, TempoConfig
from .effects_basic import apply_bandpass

logger = logging.getLogger("PyArranger")

TEMPO_UNKNOWN = 0


class TempoCandidate(NamedTuple):
    bpm: float
    strength: float


def analysis_window(buffer: AudioBuffer, config: TempoConfig = TEMPO_CONFIG) -> AudioBuffer:
    """Long material is reduced to a window centered near its midpoint."""
    if buffer.duration <= config.max_analysis_seconds:
        return buffer
    start = math.floor(buffer.duration / 2) - config.max_analysis_seconds / 2
    return buffer.slice_seconds(start, start + config.max_analysis_seconds)


def onset_envelope(mono: np.ndarray, sr: int, config: TempoConfig = TEMPO_CONFIG) -> tuple[np.ndarray, float]:
    """
    Rectified first difference of a short-window RMS envelope.

    Returns:
        (onset strength per window, window length in seconds)
    """
    window_size = max(1, int(math.floor(sr * config.window_seconds)))
    n_windows = int(math.ceil(len(mono) / window_size))
    padded = np.zeros(n_windows * window_size, dtype=np.float64)
    padded[:len(mono)] = mono

    # The final partial window is divided by the full size
    energy = np.sqrt(np.sum(padded.reshape(n_windows, window_size) ** 2, axis=1) / window_size)
    onsets = np.maximum(np.diff(energy), 0.0)
    return onsets, window_size / sr


def score_lags(onsets: np.ndarray, hop_seconds: float, config: TempoConfig = TEMPO_CONFIG) -> list[TempoCandidate]:
    """Correlation strength for every lag in the BPM search range, strongest first."""
    min_lag = max(1, int(math.floor(60.0 / (config.max_bpm * hop_seconds))))
    max_lag = int(math.ceil(60.0 / (config.min_bpm * hop_seconds)))
    search_len = min(len(onsets), config.search_frames)

    candidates = []
    for lag in range(min_lag, max_lag + 1):
        if lag < search_len:
            strength = float(np.dot(onsets[:search_len - lag], onsets[lag:search_len]))
        else:
            strength = 0.0
        candidates.append(TempoCandidate(60.0 / (lag * hop_seconds), strength))

    candidates.sort(key=lambda c: c.strength, reverse=True)
    return candidates


def choose_tempo(candidates: list[TempoCandidate], config: TempoConfig = TEMPO_CONFIG) -> float:
    """
    Pick the winner among the top candidates, preferring a close runner-up
    that sits in the typical range or that the winner is an octave above.
    """
    top = candidates[:config.top_candidates]
    chosen = top[0].bpm
    max_strength = top[0].strength

    for candidate in top[1:]:
        if candidate.strength <= max_strength * config.score_ratio:
            continue
        winner_is_extreme = chosen < config.typical_min_bpm or chosen > config.typical_max_bpm
        candidate_is_typical = config.typical_min_bpm <= candidate.bpm <= config.typical_max_bpm
        if winner_is_extreme and candidate_is_typical:
            chosen = candidate.bpm
        if abs(candidate.bpm - 2 * chosen) < config.octave_tolerance_bpm:
            chosen = candidate.bpm
    return chosen


def estimate_tempo(buffer: AudioBuffer, config: TempoConfig = TEMPO_CONFIG) -> int:
    """
    Estimate the tempo of a buffer in whole BPM.

    Returns:
        Rounded BPM, or TEMPO_UNKNOWN (0) when there is no usable energy.
        Never raises: analysis failures are logged and reported as 0.
    """
    try:
        window = analysis_window(buffer, config)
        if window.length == 0:
            return TEMPO_UNKNOWN

        filtered = apply_bandpass(
            window.mono(), window.samplerate,
            low_cutoff=config.band_low_hz, high_cutoff=config.band_high_hz
        )
        onsets, hop_seconds = onset_envelope(filtered, window.samplerate, config)
        if len(onsets) == 0 or not np.any(onsets > 0):
            logger.debug("No onsets found, tempo unknown")
            return TEMPO_UNKNOWN

        candidates = score_lags(onsets, hop_seconds, config)
        if not candidates or candidates[0].strength <= 0:
            return TEMPO_UNKNOWN

        bpm = int(math.floor(choose_tempo(candidates, config) + 0.5))
        logger.debug("Estimated tempo %d BPM", bpm)
        return bpm
    except Exception as e:
        logger.warning("Tempo estimation failed: %s", e)
        return TEMPO_UNKNOWN
