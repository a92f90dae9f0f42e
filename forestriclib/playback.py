"""Real-time preview: rate-shifted playback of the crop with a live spectrum."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

import numpy as np

from .audio import AudioContext, acquire_context
from .events import EventBus
from .graph import RealtimeClock, RenderError, RenderGraph
from .models import CropRange, PcmBuffer, PlaybackState, RenderMode

log = logging.getLogger(__name__)


class ThreadFrameClock:
    """Calls a callback at a fixed cadence on a daemon thread.

    Any object with ``start(callback)`` and ``cancel()`` can stand in for
    this one; the GUI supplies a QTimer-based clock instead.
    """

    def __init__(self, interval: float = 1 / 60):
        self.interval = interval
        self._stop: threading.Event | None = None

    @property
    def running(self) -> bool:
        return self._stop is not None and not self._stop.is_set()

    def start(self, callback: Callable[[], None]):
        self.cancel()
        stop = threading.Event()
        self._stop = stop

        def loop():
            while not stop.wait(self.interval):
                callback()

        threading.Thread(target=loop, name="frame-clock", daemon=True).start()

    def cancel(self):
        if self._stop is not None:
            self._stop.set()
            self._stop = None


@dataclass
class PlaybackSession:
    """Graph and output clock of one preview run."""
    graph: RenderGraph
    clock: RealtimeClock
    crop: CropRange
    mode: RenderMode
    started_at: float = field(default_factory=time.monotonic)

    @property
    def expected_duration(self) -> float:
        return self.crop.span / self.mode.rate


class PlaybackEngine:
    """``IDLE -> PLAYING -> IDLE`` preview of a crop.

    The graph always reads the original decoded buffer; only the source
    rate, offset and duration change between runs.  Events:

    * ``playback.started(mode, start, end)``
    * ``playback.frame(data)`` -- analyser bytes, once per frame tick
    * ``playback.finished(reason)`` -- ``"ended"`` or ``"stopped"``
    * ``playback.error(message)``
    """

    def __init__(
        self,
        context: AudioContext | None = None,
        frame_clock=None,
        event_bus: EventBus | None = None,
        *,
        fft_size: int = 512,
        time_constant: float = 0.01,
        smoothing: float = 0.8,
    ):
        self._context = context
        self._frame_clock = frame_clock if frame_clock is not None else ThreadFrameClock()
        self._bus = event_bus
        self._fft_size = fft_size
        self._time_constant = time_constant
        self._smoothing = smoothing
        self._volume = 1.0
        self._session: PlaybackSession | None = None
        self._lock = threading.RLock()

    @property
    def state(self) -> PlaybackState:
        return PlaybackState.PLAYING if self._session is not None else PlaybackState.IDLE

    @property
    def is_playing(self) -> bool:
        return self._session is not None

    @property
    def volume(self) -> float:
        return self._volume

    def set_volume(self, volume: float):
        """Change the gain; a running preview glides to it."""
        self._volume = float(volume)
        session = self._session
        if session is not None:
            session.graph.gain.set_target(self._volume)

    def start(self, buffer: PcmBuffer | None, crop: CropRange | None,
              mode: RenderMode, volume: float | None = None) -> bool:
        """Begin previewing *crop*.  Returns True if a new session started."""
        if volume is not None:
            self._volume = float(volume)
        if buffer is None or crop is None:
            return False
        with self._lock:
            if self._session is not None:
                return False
            context = self._context or acquire_context()
            try:
                graph = RenderGraph(
                    buffer,
                    offset=crop.start,
                    duration=crop.end - crop.start,
                    rate=mode.rate,
                    volume=self._volume,
                    time_constant=self._time_constant,
                    fft_size=self._fft_size,
                    smoothing=self._smoothing,
                )
            except RenderError as e:
                log.warning("Preview graph rejected: %s", e)
                return False
            session = PlaybackSession(graph=graph, clock=RealtimeClock(context),
                                      crop=crop, mode=mode)
            self._session = session
            # The clock runs before the stream does so a stream that ends
            # at once cancels it through _on_stream_finished.
            self._frame_clock.start(self._tick)
            try:
                session.clock.drive(graph, lambda: self._on_stream_finished(session))
            except Exception as e:
                self._session = None
                self._frame_clock.cancel()
                session.clock.halt()
                log.warning("Cannot open output stream: %s", e)
                if self._bus:
                    self._bus.emit("playback.error", message=str(e))
                return False

            log.debug("Preview %s [%.2f, %.2f) at %.1fx",
                      mode.key, crop.start, crop.end, mode.rate)
            if self._bus and self._session is session:
                self._bus.emit("playback.started", mode=mode,
                               start=crop.start, end=crop.end)
        return True

    def stop(self):
        """Halt playback and tear down the graph.  Safe to call when idle."""
        with self._lock:
            session, self._session = self._session, None
        if session is None:
            return
        self._frame_clock.cancel()
        session.clock.halt()
        if self._bus:
            self._bus.emit("playback.finished", reason="stopped")

    def toggle(self, buffer: PcmBuffer | None, crop: CropRange | None,
               mode: RenderMode, volume: float | None = None) -> bool:
        """Stop if playing, otherwise start.  Returns the new playing state."""
        if self.is_playing:
            self.stop()
            return False
        return self.start(buffer, crop, mode, volume)

    def spectrum(self) -> np.ndarray | None:
        session = self._session
        if session is None or session.graph.analyser is None:
            return None
        return session.graph.analyser.byte_frequency_data()

    def _tick(self):
        if not self._bus or not self._bus.has_subscribers("playback.frame"):
            return
        data = self.spectrum()
        if data is not None:
            self._bus.emit("playback.frame", data=data)

    def _on_stream_finished(self, session: PlaybackSession):
        # Audio thread.  A stream closed by stop() also lands here.
        with self._lock:
            if self._session is not session:
                return
            self._session = None
        self._frame_clock.cancel()
        log.debug("Preview ended after %.2fs", time.monotonic() - session.started_at)
        if self._bus:
            self._bus.emit("playback.finished", reason="ended")
