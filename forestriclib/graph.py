"""Signal chain shared by live preview and offline export.

A :class:`RenderGraph` wires ``source -> gain -> analyser`` over a decoded
buffer.  It produces audio only when pulled; *when* it is pulled is decided
by a clock:

* :class:`RealtimeClock` hands the graph to a sounddevice output stream,
  which pulls one block per audio callback at wall-clock pace.
* :class:`OfflineClock` pulls fixed quanta in a loop until a preallocated
  output is full, as fast as the CPU allows.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

import numpy as np
from scipy.fft import rfft
from scipy.signal import get_window

from .audio import RENDER_QUANTUM, AudioContext
from .models import ForestricError, PcmBuffer

log = logging.getLogger(__name__)


class RenderError(ForestricError):
    """Raised when a render graph or offline render cannot be built or run."""
    pass


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

class BufferSource:
    """Reads a window of *buffer* at *rate* times normal speed.

    Positions between samples are linearly interpolated.  Output past the
    end of the window is silence and marks the source finished.
    """

    def __init__(self, buffer: PcmBuffer, rate: float,
                 offset: float = 0.0, duration: float | None = None):
        if not rate > 0:
            raise RenderError(f"Playback rate must be positive, got {rate}")
        self._buffer = buffer
        self.rate = float(rate)
        sr = buffer.samplerate
        if duration is None:
            duration = buffer.duration - offset
        self._start_pos = max(0.0, offset) * sr
        self._stop_pos = min((max(0.0, offset) + max(0.0, duration)) * sr,
                             float(buffer.frame_count))
        self._produced = 0

    @property
    def finished(self) -> bool:
        return self._start_pos + self._produced * self.rate >= self._stop_pos

    def pull(self, frames: int) -> np.ndarray:
        data = self._buffer.data
        out = np.zeros((data.shape[0], frames), dtype=np.float32)
        pos = self._start_pos + (self._produced + np.arange(frames)) * self.rate
        live = pos < self._stop_pos
        if live.any():
            p = pos[live]
            i0 = np.floor(p).astype(np.int64)
            frac = (p - i0).astype(np.float32)
            i1 = np.minimum(i0 + 1, data.shape[1] - 1)
            out[:, live] = data[:, i0] * (1.0 - frac) + data[:, i1] * frac
        self._produced += frames
        return out


class GainStage:
    """Linear gain whose target is approached exponentially.

    ``set_target`` may be called from any thread while the graph is being
    pulled; the change is smoothed with time constant *time_constant*.
    """

    def __init__(self, value: float, samplerate: int, time_constant: float = 0.01):
        self._current = float(value)
        self._target = float(value)
        self._samples_per_tau = max(time_constant * samplerate, 1e-9)

    @property
    def value(self) -> float:
        return self._current

    @property
    def target(self) -> float:
        return self._target

    def set_target(self, value: float):
        self._target = float(value)

    def process(self, block: np.ndarray) -> np.ndarray:
        target = self._target
        current = self._current
        if current == target:
            return block * np.float32(target)
        n = block.shape[1]
        decay = np.exp(-np.arange(1, n + 1) / self._samples_per_tau)
        curve = (target + (current - target) * decay).astype(np.float32)
        self._current = target if abs(curve[-1] - target) < 1e-6 else float(curve[-1])
        return block * curve


class Analyser:
    """Pass-through node exposing a smoothed magnitude spectrum.

    ``byte_frequency_data`` maps the smoothed spectrum from
    ``[MIN_DB, MAX_DB]`` onto ``0..255``, one value per frequency bin.
    """

    MIN_DB = -100.0
    MAX_DB = -30.0

    def __init__(self, fft_size: int = 512, smoothing: float = 0.8):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise RenderError(f"FFT size must be a power of two >= 32, got {fft_size}")
        self.fft_size = fft_size
        self.smoothing = float(smoothing)
        self._ring = np.zeros(fft_size, dtype=np.float32)
        self._window = get_window("blackman", fft_size, fftbins=True)
        self._smoothed = np.zeros(fft_size // 2, dtype=np.float64)
        self._lock = threading.Lock()

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def process(self, block: np.ndarray) -> np.ndarray:
        mono = block.mean(axis=0)
        n = len(mono)
        with self._lock:
            if n >= self.fft_size:
                self._ring[:] = mono[-self.fft_size:]
            else:
                self._ring[:-n] = self._ring[n:]
                self._ring[-n:] = mono
        return block

    def byte_frequency_data(self) -> np.ndarray:
        with self._lock:
            frame = self._ring.astype(np.float64)
        spectrum = np.abs(rfft(frame * self._window))[:self.frequency_bin_count]
        spectrum /= self.fft_size
        self._smoothed = (self.smoothing * self._smoothed
                          + (1.0 - self.smoothing) * spectrum)
        db = 20.0 * np.log10(np.maximum(self._smoothed, np.finfo(np.float64).tiny))
        scaled = np.floor(255.0 / (self.MAX_DB - self.MIN_DB) * (db - self.MIN_DB))
        return np.clip(scaled, 0, 255).astype(np.uint8)


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------

class RenderGraph:
    """``source -> gain -> [analyser]`` over one buffer window."""

    def __init__(self, buffer: PcmBuffer, *, offset: float, duration: float,
                 rate: float, volume: float, time_constant: float = 0.01,
                 fft_size: int | None = None, smoothing: float = 0.8):
        self.source = BufferSource(buffer, rate, offset, duration)
        self.gain = GainStage(volume, buffer.samplerate, time_constant)
        self.analyser = Analyser(fft_size, smoothing) if fft_size else None
        self.num_channels = buffer.num_channels
        self.samplerate = buffer.samplerate

    @property
    def finished(self) -> bool:
        return self.source.finished

    def pull(self, frames: int) -> np.ndarray:
        block = self.gain.process(self.source.pull(frames))
        if self.analyser is not None:
            block = self.analyser.process(block)
        return block


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------

class OfflineClock:
    """Pulls a graph in fixed quanta into an output of exactly *frame_count*."""

    def __init__(self, frame_count: int, quantum: int = RENDER_QUANTUM):
        if frame_count <= 0:
            raise RenderError(f"Offline render needs a positive frame count, got {frame_count}")
        self.frame_count = int(frame_count)
        self.quantum = max(1, int(quantum))

    def drive(self, graph: RenderGraph) -> np.ndarray:
        out = np.zeros((graph.num_channels, self.frame_count), dtype=np.float32)
        pos = 0
        while pos < self.frame_count:
            n = min(self.quantum, self.frame_count - pos)
            out[:, pos:pos + n] = graph.pull(n)
            pos += n
        return out


class RealtimeClock:
    """Feeds a graph to an output stream, one block per audio callback."""

    def __init__(self, context: AudioContext):
        self._context = context
        self._stream = None

    @property
    def active(self) -> bool:
        return self._stream is not None

    def drive(self, graph: RenderGraph, on_finished: Callable[[], None]):
        stop_signal = self._context.stop_signal()

        def callback(outdata, frames, time_info, status):
            outdata[:] = graph.pull(frames).T
            if graph.finished:
                raise stop_signal()

        stream = self._context.open_stream(
            samplerate=graph.samplerate,
            channels=graph.num_channels,
            dtype="float32",
            callback=callback,
            finished_callback=on_finished,
        )
        self._stream = stream
        stream.start()
        return stream

    def halt(self):
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            log.warning("Closing output stream failed: %s", e)
