"""
Audio container decode/encode.
"""
from __future__ import annotations
from enum import Enum
import io
import logging
from typing import Optional
import numpy as np
import soundfile as sf

from .buffer import AudioBuffer
from .types import CodecError

logger = logging.getLogger("PyArranger")


class ExportFormat(Enum):
    """Export container: (libsndfile format, subtype, file extension)."""
    WAV = ('WAV', 'PCM_16', 'wav')
    FLAC = ('FLAC', 'PCM_16', 'flac')
    MP3 = ('MP3', 'MPEG_LAYER_III', 'mp3')

    @property
    def extension(self) -> str:
        return self.value[2]

    @classmethod
    def parse(cls, name: "str | ExportFormat") -> "ExportFormat":
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).upper().lstrip('.')]
        except KeyError:
            raise ValueError(f"Unsupported export format: {name!r}") from None


def decode_audio(raw: bytes) -> AudioBuffer:
    """
    Decode container bytes into a float32 (frames, channels) buffer at the
    file's native rate. Formats libsndfile cannot read go through librosa.
    """
    if not raw:
        raise CodecError("No audio data")
    try:
        data, samplerate = sf.read(io.BytesIO(raw), dtype='float32', always_2d=True)
        return AudioBuffer(data, samplerate)
    except Exception as e:
        logger.debug("soundfile could not decode input (%s), trying librosa", e)

    try:
        import librosa
        data, samplerate = librosa.load(io.BytesIO(raw), sr=None, mono=False)
        # Convert to (samples, channels)
        if data.ndim > 1:
            data = data.T
        return AudioBuffer(data.astype(np.float32), int(samplerate))
    except Exception as e:
        logger.warning("Failed to decode audio: %s", e)
        raise CodecError(f"Could not decode audio: {e}") from e


def encode_audio(
    buffer: AudioBuffer,
    fmt: "str | ExportFormat" = ExportFormat.WAV,
    subtype: Optional[str] = None
) -> bytes:
    """Encode a buffer into container bytes. `subtype` overrides the format's sample encoding."""
    fmt = ExportFormat.parse(fmt)
    container, default_subtype, _ = fmt.value
    subtype = subtype or default_subtype
    out = io.BytesIO()
    try:
        sf.write(out, np.asarray(buffer.data), buffer.samplerate, format=container, subtype=subtype)
    except Exception as e:
        logger.error("Failed to encode %s: %s", fmt.name, e, exc_info=True)
        raise CodecError(f"Could not encode {fmt.name}: {e}") from e
    return out.getvalue()
