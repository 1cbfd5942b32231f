"""
Synthesized drum patterns and scale-based synth sequences used as looping
generated clips.

Each drum pattern is one bar of 16 sixteenth-note steps:
0 rest, 1 kick, 2 snare, 3 hi-hat, 4 high metronome tick, 5 low metronome tick.
"""
from __future__ import annotations
import math
from typing import Callable
import numpy as np
from scipy.signal import sawtooth, square

from .buffer import AudioBuffer
from .config import AUDIO_CONFIG
from .effects_basic import apply_highpass, apply_lowpass

BEAT_PATTERNS: dict[str, tuple[int, ...]] = {
    'Rock': (1, 0, 3, 0, 2, 0, 3, 0, 1, 0, 3, 1, 2, 0, 3, 0),
    'HipHop': (1, 0, 3, 0, 2, 0, 3, 1, 0, 1, 3, 0, 2, 0, 3, 0),
    'Techno': (1, 3, 0, 3) * 4,
    'Metronome': (4, 0, 0, 0, 5, 0, 0, 0, 5, 0, 0, 0, 5, 0, 0, 0),
}
STEPS_PER_BAR = 16


def _time_axis(sr: int, length: float) -> np.ndarray:
    return np.linspace(0.0, length, int(sr * length), endpoint=False, dtype=np.float32)


def _kick(sr: int) -> np.ndarray:
    t = _time_axis(sr, 0.5)
    freq = 150.0 * np.exp(-t * 9.0) + 40.0
    phase = 2.0 * math.pi * np.cumsum(freq) / sr
    return (np.sin(phase) * np.exp(-t * 9.0)).astype(np.float32)


def _snare(sr: int, rng: np.random.Generator) -> np.ndarray:
    t = _time_axis(sr, 0.2)
    tone = 2.0 / math.pi * np.arcsin(np.sin(2.0 * math.pi * 100.0 * t))  # triangle
    noise = rng.normal(0.0, 1.0, t.size)
    env = np.exp(-t * 23.0)
    return ((0.6 * tone + 0.4 * noise) * env * 0.8).astype(np.float32)


def _hihat(sr: int, rng: np.random.Generator) -> np.ndarray:
    t = _time_axis(sr, 0.05)
    square = np.sign(np.sin(2.0 * math.pi * 800.0 * t))
    noise = rng.normal(0.0, 1.0, t.size)
    raw = (0.5 * square + 0.5 * noise).astype(np.float32)
    return (apply_highpass(raw, sr, cutoff=5000.0) * np.exp(-t * 90.0) * 0.3).astype(np.float32)


def _tick(sr: int, freq: float) -> np.ndarray:
    t = _time_axis(sr, 0.1)
    return (np.sin(2.0 * math.pi * freq * t) * np.exp(-t * 46.0) * 0.5).astype(np.float32)


def generate_drum_beat(
    style: str,
    bpm: float,
    bars: int = 4,
    sr: int = AUDIO_CONFIG.default_samplerate
) -> AudioBuffer:
    """
    Render `bars` bars of a pattern at `bpm` into a stereo buffer lasting
    exactly bars * 4 beats. Unknown styles fall back to the metronome.
    Output is deterministic.
    """
    if bpm <= 0:
        raise ValueError(f"BPM must be positive, got {bpm}")
    if bars < 1:
        raise ValueError(f"Need at least one bar, got {bars}")

    pattern = BEAT_PATTERNS.get(style, BEAT_PATTERNS['Metronome'])
    beat_len = 60.0 / bpm
    step_len = beat_len / 4
    total = int(math.ceil(bars * 4 * beat_len * sr))

    rng = np.random.default_rng(0)
    sounds = {
        1: _kick(sr),
        2: _snare(sr, rng),
        3: _hihat(sr, rng),
        4: _tick(sr, 1200.0),
        5: _tick(sr, 800.0),
    }

    mono = np.zeros(total, dtype=np.float32)
    for bar in range(bars):
        for step, kind in enumerate(pattern):
            if kind == 0:
                continue
            offset = int(round((bar * STEPS_PER_BAR + step) * step_len * sr))
            if offset >= total:
                continue
            hit = sounds[kind][:total - offset]
            mono[offset:offset + len(hit)] += hit

    np.clip(mono, -1.0, 1.0, out=mono)
    return AudioBuffer(np.column_stack([mono, mono]), sr)


# =============================================================================
# SYNTH SEQUENCES
# =============================================================================

NOTE_NAMES = ('C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B')
SCALE_INTERVALS: dict[str, tuple[int, ...]] = {
    'Major': (0, 2, 4, 5, 7, 9, 11, 12),
    'Minor': (0, 2, 3, 5, 7, 8, 10, 12),
}
C4_HZ = 261.63

# (scale index, start seconds, length seconds)
NoteEvent = tuple[int, float, float]
Voice = Callable[[float, np.ndarray, float, int], np.ndarray]


def scale_frequencies(root: str, octave: int, scale: str) -> list[float]:
    """Frequencies of the eight scale degrees (root to octave) starting at `root` in `octave`."""
    try:
        root_index = NOTE_NAMES.index(root.upper())
    except ValueError:
        raise ValueError(f"Unknown root note: {root!r}") from None
    if scale not in SCALE_INTERVALS:
        raise ValueError(f"Unknown scale: {scale!r}")
    return [
        C4_HZ * 2.0 ** (((octave - 4) * 12 + root_index + semitone) / 12.0)
        for semitone in SCALE_INTERVALS[scale]
    ]


def _ramp(t: np.ndarray, points: list[tuple[float, float]]) -> np.ndarray:
    """Piecewise-linear envelope through (time, value) breakpoints, held after the last."""
    times = np.maximum.accumulate([p[0] for p in points])
    values = [p[1] for p in points]
    return np.interp(t, times, values).astype(np.float32)


def _attack_decay(t: np.ndarray, peak: float, attack: float, end: float, floor: float) -> np.ndarray:
    """Linear rise to `peak` over `attack`, then exponential fall reaching `floor` at `end`."""
    span = max(end - attack, 1e-6)
    decay = peak * (floor / peak) ** np.clip((t - attack) / span, 0.0, 1.0)
    return np.where(t < attack, peak * t / attack, decay).astype(np.float32)


def _sweep(raw: np.ndarray, sr: int, dark: float, bright: float, brightness: np.ndarray) -> np.ndarray:
    """Time-varying low-pass: blend of a dark and a bright copy, weighted per sample."""
    return (1.0 - brightness) * apply_lowpass(raw, sr, dark) + brightness * apply_lowpass(raw, sr, bright)


def _analog_bass(freq, t, duration, sr):
    raw = sawtooth(2.0 * math.pi * freq * t)
    brightness = _ramp(t, [(0.0, 0.0), (0.05, 1.0), (duration, 0.0)])
    return _sweep(raw, sr, 100.0, 1500.0, brightness) * _attack_decay(t, 0.8, 0.02, duration, 0.01)


def _chiptune_lead(freq, t, duration, sr):
    raw = square(2.0 * math.pi * freq * t)
    gain = _ramp(t, [(0.0, 0.0), (0.01, 0.5), (duration - 0.05, 0.5), (duration, 0.0)])
    return apply_lowpass(raw, sr, 12000.0) * gain


def _dreamy_pad(freq, t, duration, sr):
    raw = sawtooth(2.0 * math.pi * freq * t, 0.5) + sawtooth(2.0 * math.pi * freq * 1.01 * t, 0.5)
    gain = _ramp(t, [(0.0, 0.0), (duration / 2, 0.4), (duration, 0.0)])
    return apply_lowpass(raw, sr, 2000.0) * gain


def _pluck(freq, t, duration, sr):
    raw = sawtooth(2.0 * math.pi * freq * t, 0.5)
    brightness = _ramp(t, [(0.0, 1.0), (0.3, 0.0)])
    return _sweep(raw, sr, 200.0, 3000.0, brightness) * _attack_decay(t, 0.8, 0.01, 0.5, 0.001)


def _electric_piano(freq, t, duration, sr):
    # FM: a sine at twice the pitch modulates the carrier frequency by +-500 Hz
    inst_freq = freq + 500.0 * np.sin(2.0 * math.pi * freq * 2.0 * t)
    phase = 2.0 * math.pi * np.cumsum(inst_freq) / sr
    raw = sawtooth(phase, 0.5)
    return apply_lowpass(raw, sr, 3000.0) * _attack_decay(t, 0.7, 0.02, duration * 1.5, 0.01)


def _saw_lead(freq, t, duration, sr):
    raw = sawtooth(2.0 * math.pi * freq * t) + sawtooth(2.0 * math.pi * freq * 1.005 * t)
    brightness = _ramp(t, [(0.0, 0.0), (0.1, 1.0)])
    gain = _ramp(t, [(0.0, 0.0), (0.05, 0.5), (duration, 0.0)])
    return _sweep(raw, sr, 800.0, 4000.0, brightness) * gain


def _strings(freq, t, duration, sr):
    raw = sawtooth(2.0 * math.pi * freq * t)
    gain = _ramp(t, [(0.0, 0.0), (0.3, 0.4), (duration + 0.2, 0.0)])
    return apply_lowpass(raw, sr, 1500.0) * gain


def _glitch_bass(freq, t, duration, sr):
    raw = square(2.0 * math.pi * freq * t)
    wobble = (square(2.0 * math.pi * 12.0 * t) + 1.0) / 2.0  # 12 Hz square LFO on the cutoff
    gain = _ramp(t, [(0.0, 0.0), (0.01, 0.8), (duration - 0.05, 0.8), (duration, 0.0)])
    return _sweep(raw, sr, 200.0, 1400.0, wobble) * gain


SYNTH_PRESETS: dict[str, Voice] = {
    'Analog Bass': _analog_bass,
    'Chiptune Lead': _chiptune_lead,
    'Dreamy Pad': _dreamy_pad,
    'Pluck': _pluck,
    'Electric Piano': _electric_piano,
    'Saw Lead': _saw_lead,
    'Strings': _strings,
    'Glitch Bass': _glitch_bass,
}


def _one_shot(bars: int, beat_len: float, rng: np.random.Generator) -> list[NoteEvent]:
    return [(0, 0.0, 2.0)]


def _bassline(bars, beat_len, rng):
    step = beat_len / 2
    notes = []
    for i in range(bars * 8):
        if rng.random() > 0.3:
            notes.append((int(rng.integers(0, 3)), i * step, step * 0.8))
    return notes


def _arpeggio(bars, beat_len, rng):
    step = beat_len / 4
    degrees = (0, 2, 4, 7)
    return [(degrees[i % 4], i * step, step * 0.5) for i in range(bars * 16)]


def _random_melody(bars, beat_len, rng):
    step = beat_len / 2
    notes = []
    last = 0
    for i in range(bars * 8):
        if rng.random() > 0.2:
            direction = 1 if rng.random() > 0.5 else -1
            last = min(max(last + direction, 0), 7)
            notes.append((last, i * step, step * 0.9))
    return notes


def _chords(bars, beat_len, rng):
    step = beat_len * 2
    progression = (0, 4, 5, 3)
    notes = []
    for i in range(bars * 2):
        root = progression[i % 4]
        for degree in (root, root + 2, root + 4):
            if degree < 8:
                notes.append((degree, i * step, step))
    return notes


SYNTH_PATTERNS: dict[str, Callable[[int, float, np.random.Generator], list[NoteEvent]]] = {
    'One Shot': _one_shot,
    'Bassline': _bassline,
    'Arpeggio': _arpeggio,
    'Random Melody': _random_melody,
    'Chords': _chords,
}


def generate_synth_sequence(
    preset: str,
    pattern: str,
    root: str = 'C',
    scale: str = 'Minor',
    bpm: float = 120.0,
    bars: int = 4,
    sr: int = AUDIO_CONFIG.default_samplerate,
    seed: int = 0
) -> AudioBuffer:
    """
    Render a note pattern over a major or minor scale with one of the
    virtual-analog presets. Basslines sit two octaves below the other
    patterns. The buffer lasts exactly bars * 4 beats; notes running past
    the end are cut. Random patterns draw from a generator seeded with `seed`.

    Raises:
        ValueError: unknown preset, pattern, root or scale, or bad tempo/bars
    """
    if bpm <= 0:
        raise ValueError(f"BPM must be positive, got {bpm}")
    if bars < 1:
        raise ValueError(f"Need at least one bar, got {bars}")
    if preset not in SYNTH_PRESETS:
        raise ValueError(f"Unknown synth preset: {preset!r}")
    if pattern not in SYNTH_PATTERNS:
        raise ValueError(f"Unknown synth pattern: {pattern!r}")

    freqs = scale_frequencies(root, 2 if pattern == 'Bassline' else 4, scale)
    voice = SYNTH_PRESETS[preset]
    beat_len = 60.0 / bpm
    total = int(math.ceil(bars * 4 * beat_len * sr))

    mono = np.zeros(total, dtype=np.float32)
    rng = np.random.default_rng(seed)
    for degree, start, length in SYNTH_PATTERNS[pattern](bars, beat_len, rng):
        offset = int(round(start * sr))
        t = _time_axis(sr, length)
        if offset >= total or t.size == 0:
            continue
        note = voice(freqs[degree], t, length, sr)[:total - offset]
        mono[offset:offset + len(note)] += note

    np.clip(mono, -1.0, 1.0, out=mono)
    return AudioBuffer(np.column_stack([mono, mono]), sr)
