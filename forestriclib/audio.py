from __future__ import annotations

import io
import logging
import os
import tempfile
import threading
import warnings
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np
import soundfile as sf

from .models import ForestricError, PcmBuffer

log = logging.getLogger(__name__)

AUDIO_EXTENSIONS = (".mp3", ".wav", ".m4a", ".ogg", ".flac", ".aif", ".aiff")

RENDER_QUANTUM = 128  # frames per graph pull


class DecodeError(ForestricError):
    """Raised when input bytes cannot be decoded into PCM."""
    pass


# ---------------------------------------------------------------------------
# Process-wide audio context
# ---------------------------------------------------------------------------

@dataclass
class AudioContext:
    """Shared audio processing context.

    Holds the output-stream factory and the exception an output callback
    raises to end a stream.  Both default to sounddevice and are resolved
    on first use, so creating the context never touches PortAudio.
    """
    render_quantum: int = RENDER_QUANTUM
    stream_factory: Callable[..., Any] | None = None
    callback_stop: type[BaseException] | None = None

    def _resolve(self):
        if self.stream_factory is None or self.callback_stop is None:
            import sounddevice as sd
            if self.stream_factory is None:
                self.stream_factory = sd.OutputStream
            if self.callback_stop is None:
                self.callback_stop = sd.CallbackStop

    def open_stream(self, **kwargs):
        """Create (but do not start) an output stream."""
        self._resolve()
        return self.stream_factory(**kwargs)

    def stop_signal(self) -> type[BaseException]:
        self._resolve()
        return self.callback_stop


_CONTEXT: AudioContext | None = None
_CONTEXT_LOCK = threading.Lock()


def acquire_context() -> AudioContext:
    """Return the process-wide :class:`AudioContext`, creating it once."""
    global _CONTEXT
    if _CONTEXT is None:
        with _CONTEXT_LOCK:
            if _CONTEXT is None:
                _CONTEXT = AudioContext()
                log.debug("Audio context created")
    return _CONTEXT


def install_context(context: AudioContext | None) -> AudioContext | None:
    """Replace the process-wide context (used by tests and embedders).

    Returns the previous context.
    """
    global _CONTEXT
    with _CONTEXT_LOCK:
        previous = _CONTEXT
        _CONTEXT = context
    return previous


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def is_probably_audio(name: str, mime: str | None = None) -> bool:
    """Advisory check mirroring a file picker filter.

    A True result does not promise the file decodes; :func:`decode` is the
    authoritative check.
    """
    if mime and mime.lower().startswith("audio/"):
        return True
    return name.lower().endswith(AUDIO_EXTENSIONS)


def _read_with_librosa(raw: bytes) -> tuple[np.ndarray, int]:
    """Decode through librosa's audioread path (AAC/M4A and friends).

    audioread only opens files, so the bytes go through a temporary file.
    """
    import librosa  # deferred; only needed for formats libsndfile lacks

    fd, path = tempfile.mkstemp(prefix="forestric-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(raw)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            y, samplerate = librosa.load(path, sr=None, mono=False)
    finally:
        os.unlink(path)
    y = np.atleast_2d(np.asarray(y, dtype=np.float32))
    return y.T, int(samplerate)


def decode(raw: bytes) -> PcmBuffer:
    """Decode raw file bytes into a channel-separated float32 buffer.

    libsndfile handles WAV/FLAC/OGG/AIFF/MP3; anything it rejects is
    retried through librosa before giving up.
    """
    acquire_context()
    if not raw:
        raise DecodeError("File is empty")
    try:
        data, samplerate = sf.read(io.BytesIO(raw), dtype="float32", always_2d=True)
    except (sf.SoundFileError, RuntimeError, TypeError, ValueError) as e:
        log.debug("soundfile rejected input (%s), trying librosa", e)
        try:
            data, samplerate = _read_with_librosa(raw)
        except Exception as e2:
            raise DecodeError(f"Unsupported or corrupt audio: {e}") from e2
    if data.shape[0] == 0:
        raise DecodeError("Audio contains no samples")
    buffer = PcmBuffer(np.ascontiguousarray(data.T), samplerate)
    log.debug("Decoded %d ch, %d Hz, %d frames",
              buffer.num_channels, buffer.samplerate, buffer.frame_count)
    return buffer


def decode_file(filepath: str) -> PcmBuffer:
    """Read *filepath* and decode it."""
    try:
        with open(filepath, "rb") as f:
            raw = f.read()
    except OSError as e:
        raise DecodeError(f"Cannot read {os.path.basename(filepath)}: {e}") from e
    return decode(raw)


def format_duration(seconds: float) -> str:
    if seconds <= 0:
        return "0m 0s"
    m = int(seconds // 60)
    s = round(seconds % 60, 2)
    return f"{m}m {s:g}s"
