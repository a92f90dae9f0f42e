"""Qt glue for the preview engine: a QTimer frame clock and a thread bridge."""

from __future__ import annotations

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from forestriclib.events import EventBus


class QtFrameClock(QObject):
    """Frame clock driven by a QTimer on the GUI thread.

    ``start``/``cancel`` may be called from any thread (the preview engine
    cancels from the audio thread when a stream runs out); both are
    forwarded as queued signals so the timer is only touched by its owner.
    """

    _start_requested = Signal()
    _cancel_requested = Signal()

    def __init__(self, interval_ms: int = 16, parent=None):
        super().__init__(parent)
        self._callback = None
        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._on_timeout)
        self._start_requested.connect(self._on_start_requested)
        self._cancel_requested.connect(self._on_cancel_requested)

    @property
    def running(self) -> bool:
        return self._callback is not None

    def start(self, callback):
        self._callback = callback
        self._start_requested.emit()

    def cancel(self):
        self._callback = None
        self._cancel_requested.emit()

    @Slot()
    def _on_start_requested(self):
        self._timer.start()

    @Slot()
    def _on_cancel_requested(self):
        if self._callback is None:
            self._timer.stop()

    @Slot()
    def _on_timeout(self):
        callback = self._callback
        if callback is not None:
            callback()


class PlaybackBridge(QObject):
    """Re-emits preview events as Qt signals delivered on the GUI thread.

    Signals:
        started(): preview began.
        frame(object): analyser bytes for the spectrum overlay.
        finished(str): ``"ended"`` or ``"stopped"``.
        error(str): the output stream could not be opened.
    """

    started = Signal()
    frame = Signal(object)
    finished = Signal(str)
    error = Signal(str)

    def __init__(self, event_bus: EventBus, parent=None):
        super().__init__(parent)
        self._detach = [
            event_bus.subscribe("playback.started",
                                lambda **kw: self.started.emit()),
            event_bus.subscribe("playback.frame",
                                lambda **kw: self.frame.emit(kw["data"])),
            event_bus.subscribe("playback.finished",
                                lambda **kw: self.finished.emit(kw["reason"])),
            event_bus.subscribe("playback.error",
                                lambda **kw: self.error.emit(kw["message"])),
        ]

    def detach(self):
        for detach in self._detach:
            detach()
        self._detach = []
