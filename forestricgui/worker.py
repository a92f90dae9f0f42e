"""Background worker threads for decoding and export."""

from __future__ import annotations

from PySide6.QtCore import QThread, Signal

from forestriclib.audio import decode
from forestriclib.events import EventBus
from forestriclib.export import ExportCoordinator
from forestriclib.models import CropRange, ForestricError, PcmBuffer, RenderMode


class DecodeWorker(QThread):
    """Reads and decodes one file off the main thread."""

    finished = Signal(object, str)  # (PcmBuffer, path)
    error = Signal(str)

    def __init__(self, path: str):
        super().__init__()
        self._path = path

    def run(self):
        try:
            with open(self._path, "rb") as f:
                raw = f.read()
            self.finished.emit(decode(raw), self._path)
        except (OSError, ForestricError) as e:
            self.error.emit(str(e))


class ExportWorker(QThread):
    """Runs an offline render + MP3 encode off the main thread.

    Works on a snapshot of buffer, crop, mode and volume taken when the
    export was requested, so edits made meanwhile do not leak in.
    """

    progress_value = Signal(int, int)  # (block, total)
    finished = Signal(object)          # ExportJob
    error = Signal(str)

    def __init__(self, exporter: ExportCoordinator, event_bus: EventBus,
                 buffer: PcmBuffer, crop: CropRange, mode: RenderMode,
                 volume: float, source_name: str):
        super().__init__()
        self._exporter = exporter
        self._bus = event_bus
        self._args = (buffer, crop, mode, volume, source_name)

    def _on_block(self, **data):
        self.progress_value.emit(data["index"], data["total"])

    def run(self):
        try:
            with self._bus.subscribed("export.block", self._on_block):
                job = self._exporter.run(*self._args)
            self.finished.emit(job)
        except ForestricError as e:
            self.error.emit(str(e))
        except Exception as e:
            self.error.emit(f"{type(e).__name__}: {e}")
