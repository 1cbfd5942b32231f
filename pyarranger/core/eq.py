"""
Named parametric EQ presets built from the shelf/peaking/pass filters
in effects_basic.
"""
from __future__ import annotations
from dataclasses import dataclass
import logging

from .types import AudioArray
from . import effects_basic as fx

logger = logging.getLogger("PyArranger")


@dataclass(frozen=True, slots=True)
class EqBand:
    """One filter stage of a preset."""
    kind: str  # 'highpass' | 'lowpass' | 'lowshelf' | 'highshelf' | 'peaking'
    frequency: float
    gain_db: float = 0.0
    q: float = 1.0


EQ_PRESETS: dict[str, tuple[EqBand, ...]] = {
    'Telephone': (
        EqBand('highpass', 400.0),
        EqBand('lowpass', 3000.0),
    ),
    'Bass Boost': (EqBand('lowshelf', 100.0, 8.0),),
    'Treble Boost': (EqBand('highshelf', 3000.0, 8.0),),
    'Bass Cut': (EqBand('lowshelf', 100.0, -12.0),),
    'Treble Cut': (EqBand('highshelf', 3000.0, -12.0),),
    'Mid Boost': (EqBand('peaking', 1000.0, 6.0, 1.0),),
    'V-Shape': (
        EqBand('lowshelf', 100.0, 4.0),
        EqBand('peaking', 1000.0, -6.0, 1.0),
        EqBand('highshelf', 3000.0, 4.0),
    ),
    'Lo-Fi Radio': (
        EqBand('highpass', 200.0),
        EqBand('lowpass', 2000.0),
        EqBand('peaking', 1000.0, 10.0, 2.0),
    ),
}


def _apply_band(data: AudioArray, sr: int, band: EqBand) -> AudioArray:
    if band.frequency <= 0 or band.frequency >= sr / 2:
        raise ValueError(f"EQ band frequency out of range: {band.frequency} Hz at {sr} Hz")
    if band.kind == 'highpass':
        return fx.apply_highpass(data, sr, cutoff=band.frequency)
    if band.kind == 'lowpass':
        return fx.apply_lowpass(data, sr, cutoff=band.frequency)
    if band.kind == 'lowshelf':
        return fx.apply_low_shelf(data, sr, cutoff=band.frequency, gain_db=band.gain_db)
    if band.kind == 'highshelf':
        return fx.apply_high_shelf(data, sr, cutoff=band.frequency, gain_db=band.gain_db)
    if band.kind == 'peaking':
        return fx.apply_peaking_eq(data, sr, frequency=band.frequency, gain_db=band.gain_db, Q=band.q)
    raise ValueError(f"Unknown EQ band type: {band.kind!r}")


def apply_eq_preset(
    data: AudioArray,
    sr: int,
    preset: str,
    presets: dict[str, tuple[EqBand, ...]] = EQ_PRESETS
) -> AudioArray:
    """
    Run the preset's filter chain in order.
    Unknown preset names pass the audio through untouched; a malformed band raises ValueError.
    """
    bands = presets.get(preset)
    if bands is None:
        logger.debug("Unknown EQ preset %r, passing through", preset)
        return data
    out = data
    for band in bands:
        out = _apply_band(out, sr, band)
    return out
