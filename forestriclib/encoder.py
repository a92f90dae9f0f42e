"""Streaming MPEG Layer III encoder with an explicit open/closed lifecycle."""

from __future__ import annotations

import io
import logging
from enum import Enum

import numpy as np
import soundfile as sf

from .config import MP3_BITRATE_KBPS, MP3_BLOCK_SIZE
from .models import ForestricError

log = logging.getLogger(__name__)


class EncodeError(ForestricError):
    """Raised when the MP3 encoder fails."""
    pass


class EncoderClosedError(EncodeError):
    """Raised on any call after :meth:`Mp3StreamEncoder.finish`."""
    pass


class EncoderState(Enum):
    OPEN = "open"
    CLOSED = "closed"


def quantize(samples: np.ndarray) -> np.ndarray:
    """Float samples to signed 16-bit.

    Negative values scale by 32768 and the rest by 32767, so -1.0 and 1.0
    land exactly on the ends of the int16 range.
    """
    s = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(s < 0, s * 32768.0, s * 32767.0)
    return np.round(scaled).astype(np.int16)


# libsndfile selects the CBR bitrate through a 0..1 compression level,
# interpolating from the highest to the lowest bitrate of the MPEG version
# implied by the sample rate.
_BITRATE_RANGES = (
    (32000, 32, 320),   # MPEG-1
    (16000, 8, 160),    # MPEG-2
    (0, 8, 64),         # MPEG-2.5
)


def compression_level_for_bitrate(bitrate_kbps: int, samplerate: int) -> float:
    for min_rate, lo, hi in _BITRATE_RANGES:
        if samplerate >= min_rate:
            break
    level = (hi - bitrate_kbps) / (hi - lo)
    return min(1.0, max(0.0, level))


class Mp3StreamEncoder:
    """Encodes int16 blocks of at most 1152 samples per channel.

    Each :meth:`push_block` returns whatever compressed bytes the encoder
    released for that block (possibly none).  :meth:`finish` flushes the
    remainder and closes the encoder; it may be called once, and no block
    may be pushed after it.

    libsndfile reserves the first MP3 frame for a LAME/Xing info tag and
    fills it in only when the file is closed.  That frame has already been
    handed out by then, so the stream starts with a blank frame: decoders
    read it as one silent frame (1152 samples, about 26 ms at 44.1 kHz)
    ahead of the usual encoder delay and cannot use the tag to trim that
    padding.  soundfile offers no switch to leave the tag out.
    """

    BLOCK_SIZE = MP3_BLOCK_SIZE

    def __init__(self, samplerate: int, channels: int = 2,
                 bitrate_kbps: int = MP3_BITRATE_KBPS):
        if channels not in (1, 2):
            raise EncodeError(f"MP3 supports 1 or 2 channels, got {channels}")
        self.samplerate = int(samplerate)
        self.channels = channels
        self.bitrate_kbps = bitrate_kbps
        self._sink = io.BytesIO()
        self._emitted = 0
        try:
            self._file = sf.SoundFile(
                self._sink, mode="w",
                samplerate=self.samplerate, channels=channels,
                format="MP3", subtype="MPEG_LAYER_III",
                compression_level=compression_level_for_bitrate(
                    bitrate_kbps, self.samplerate),
                bitrate_mode="CONSTANT",
            )
        except (sf.SoundFileError, RuntimeError, TypeError, ValueError) as e:
            raise EncodeError(f"Cannot open MP3 encoder: {e}") from e
        self.state = EncoderState.OPEN

    def push_block(self, left: np.ndarray, right: np.ndarray | None = None) -> bytes:
        if self.state is EncoderState.CLOSED:
            raise EncoderClosedError("Encoder already finished")
        if right is None:
            right = left
        if len(left) != len(right):
            raise EncodeError(
                f"Channel blocks differ in length: {len(left)} vs {len(right)}")
        if len(left) > self.BLOCK_SIZE:
            raise EncodeError(
                f"Block of {len(left)} samples exceeds {self.BLOCK_SIZE}")
        if self.channels == 1:
            frames = np.ascontiguousarray(left, dtype=np.int16).reshape(-1, 1)
        else:
            frames = np.column_stack((left, right)).astype(np.int16)
        try:
            self._file.write(frames)
        except (sf.SoundFileError, RuntimeError, ValueError) as e:
            raise EncodeError(f"MP3 encoding failed: {e}") from e
        return self._drain()

    def finish(self) -> bytes:
        if self.state is EncoderState.CLOSED:
            raise EncoderClosedError("Encoder already finished")
        self.state = EncoderState.CLOSED
        try:
            self._file.close()
        except (sf.SoundFileError, RuntimeError, ValueError) as e:
            raise EncodeError(f"MP3 flush failed: {e}") from e
        return self._drain()

    def _drain(self) -> bytes:
        with self._sink.getbuffer() as view:
            chunk = bytes(view[self._emitted:])
        self._emitted += len(chunk)
        return chunk
