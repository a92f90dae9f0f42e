"""Main application window for the Forestric GUI."""

from __future__ import annotations

import os
import sys
import time

from PySide6.QtCore import Qt, Slot
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QApplication,
    QButtonGroup,
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from forestriclib.audio import AUDIO_EXTENSIONS, DecodeError, format_duration, is_probably_audio
from forestriclib.config import default_config
from forestriclib.crop import from_minutes_seconds, to_minutes_seconds
from forestriclib.events import EventBus
from forestriclib.models import ExportJob, RenderMode
from forestriclib.playback import PlaybackEngine
from forestriclib.studio import Studio

from .log import attach_core_logging, dbg
from .playback import PlaybackBridge, QtFrameClock
from .theme import apply_dark_theme
from .waveform import WaveformWidget
from .worker import DecodeWorker, ExportWorker

_VOLUME_STEP = 0.05


class _TimeField(QWidget):
    """Two line edits holding ``minutes`` and ``seconds`` of one crop edge."""

    def __init__(self, label: str, parent=None):
        super().__init__(parent)
        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(4)
        layout.addWidget(QLabel(label))
        self.minutes = QLineEdit("0")
        self.minutes.setFixedWidth(40)
        self.minutes.setAlignment(Qt.AlignRight)
        self.seconds = QLineEdit("0")
        self.seconds.setFixedWidth(60)
        self.seconds.setAlignment(Qt.AlignRight)
        layout.addWidget(self.minutes)
        layout.addWidget(QLabel("m"))
        layout.addWidget(self.seconds)
        layout.addWidget(QLabel("s"))

    def value(self) -> float:
        return from_minutes_seconds(self.minutes.text(), self.seconds.text())

    def set_value(self, t: float):
        m, s = to_minutes_seconds(t)
        self.minutes.setText(str(m))
        self.seconds.setText(f"{s:.2f}")


class ForestricWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Forestric")
        self.setAcceptDrops(True)
        self.resize(1100, 560)

        config = default_config()
        self._bus = EventBus()
        self._frame_clock = QtFrameClock(parent=self)
        playback = PlaybackEngine(
            frame_clock=self._frame_clock,
            event_bus=self._bus,
            fft_size=config["fft_size"],
            time_constant=config["gain_time_constant"],
            smoothing=config["analyser_smoothing"],
        )
        self._studio = Studio(config, self._bus, playback=playback)
        self._bridge = PlaybackBridge(self._bus, parent=self)
        self._decode_worker: DecodeWorker | None = None
        self._export_worker: ExportWorker | None = None
        self._last_dir = os.path.expanduser("~")

        self._init_ui()
        apply_dark_theme(self)

        self._bus.subscribe("source.loaded", self._on_source_loaded)
        self._bus.subscribe("source.cleared", self._on_source_cleared)
        self._bus.subscribe("crop.changed", self._on_crop_changed)
        self._bridge.started.connect(self._on_preview_started)
        self._bridge.frame.connect(self._waveform.set_spectrum)
        self._bridge.finished.connect(self._on_preview_finished)
        self._bridge.error.connect(self._on_preview_error)

        self._update_controls()

    # ── UI construction ───────────────────────────────────────────────────

    def _init_ui(self):
        central = QWidget()
        root = QVBoxLayout(central)
        root.setContentsMargins(16, 12, 16, 12)
        root.setSpacing(10)

        title = QLabel("Forestric")
        title.setObjectName("title")
        root.addWidget(title)

        # File row
        file_row = QHBoxLayout()
        self._open_btn = QPushButton("Open...")
        self._open_btn.clicked.connect(self._on_open)
        file_row.addWidget(self._open_btn)
        self._file_label = QLabel("No track loaded")
        self._file_label.setObjectName("dim")
        file_row.addWidget(self._file_label, 1)
        self._clear_btn = QPushButton("Remove")
        self._clear_btn.clicked.connect(self._studio.clear)
        file_row.addWidget(self._clear_btn)
        root.addLayout(file_row)

        # Mode row
        mode_row = QHBoxLayout()
        self._mode_group = QButtonGroup(self)
        self._mode_group.setExclusive(True)
        for mode in RenderMode:
            btn = QPushButton(f"{mode.label} ({mode.rate:g}x)")
            btn.setCheckable(True)
            btn.setChecked(mode is self._studio.mode)
            btn.setProperty("mode_key", mode.key)
            self._mode_group.addButton(btn)
            mode_row.addWidget(btn)
        self._mode_group.buttonClicked.connect(self._on_mode_clicked)
        mode_row.addStretch(1)
        root.addLayout(mode_row)

        self._waveform = WaveformWidget()
        self._waveform.drag_finished.connect(self._sync_fields)
        root.addWidget(self._waveform, 1)

        # Crop row
        crop_row = QHBoxLayout()
        self._start_field = _TimeField("Start")
        self._end_field = _TimeField("End")
        for field in (self._start_field, self._end_field):
            field.minutes.editingFinished.connect(self._on_fields_edited)
            field.seconds.editingFinished.connect(self._on_fields_edited)
            crop_row.addWidget(field)
        self._span_label = QLabel("")
        self._span_label.setObjectName("dim")
        crop_row.addSpacing(12)
        crop_row.addWidget(self._span_label)
        crop_row.addStretch(1)

        crop_row.addWidget(QLabel("Volume"))
        self._volume_slider = QSlider(Qt.Horizontal)
        self._volume_slider.setRange(0, round(2.0 / _VOLUME_STEP))
        self._volume_slider.setValue(round(self._studio.volume / _VOLUME_STEP))
        self._volume_slider.setFixedWidth(160)
        self._volume_slider.valueChanged.connect(self._on_volume_changed)
        crop_row.addWidget(self._volume_slider)
        self._volume_label = QLabel(f"{self._studio.volume:.2f}x")
        self._volume_label.setFixedWidth(44)
        crop_row.addWidget(self._volume_label)
        root.addLayout(crop_row)

        # Action row
        action_row = QHBoxLayout()
        self._preview_btn = QPushButton("Preview")
        self._preview_btn.clicked.connect(self._on_preview)
        action_row.addWidget(self._preview_btn)
        self._progress = QProgressBar()
        self._progress.setVisible(False)
        action_row.addWidget(self._progress, 1)
        action_row.addStretch(1)
        self._export_btn = QPushButton("Download MP3")
        self._export_btn.setObjectName("primary")
        self._export_btn.clicked.connect(self._on_export)
        action_row.addWidget(self._export_btn)
        root.addLayout(action_row)

        self.setCentralWidget(central)
        self.statusBar().showMessage("Ready")

        QShortcut(QKeySequence(Qt.Key_Space), self, activated=self._on_preview)
        QShortcut(QKeySequence.Open, self, activated=self._on_open)

    def _update_controls(self):
        loaded = self._studio.loaded
        exporting = self._export_worker is not None
        self._open_btn.setEnabled(self._decode_worker is None)
        self._clear_btn.setEnabled(loaded and not exporting)
        self._preview_btn.setEnabled(loaded)
        self._export_btn.setEnabled(loaded and not exporting)
        for field in (self._start_field, self._end_field):
            field.setEnabled(loaded)

    # ── Loading ───────────────────────────────────────────────────────────

    @Slot()
    def _on_open(self):
        if self._decode_worker is not None:
            return
        patterns = " ".join(f"*{ext}" for ext in AUDIO_EXTENSIONS)
        path, _ = QFileDialog.getOpenFileName(
            self, "Open audio", self._last_dir,
            f"Audio files ({patterns});;All files (*)")
        if not path:
            return
        self._load_path(path)

    def _load_path(self, path: str):
        self._last_dir = os.path.dirname(path)
        if not is_probably_audio(path):
            self.statusBar().showMessage(
                f"{os.path.basename(path)} does not look like audio, trying anyway")
        self._studio.stop_preview()
        self._decode_worker = DecodeWorker(path)
        self._decode_worker.finished.connect(self._on_decode_done)
        self._decode_worker.error.connect(self._on_decode_error)
        self._decode_t0 = time.perf_counter()
        self._decode_worker.start()
        self.statusBar().showMessage(f"Decoding {os.path.basename(path)}...")
        self._update_controls()

    @Slot(object, str)
    def _on_decode_done(self, buffer, path: str):
        self._release_decode_worker()
        dbg(f"decode: {(time.perf_counter() - self._decode_t0) * 1000:.1f} ms")
        try:
            self._studio.set_source(buffer, path)
        except DecodeError as e:
            self._show_decode_error(str(e))
        self._update_controls()

    @Slot(str)
    def _on_decode_error(self, message: str):
        self._release_decode_worker()
        self._studio.clear()
        self._show_decode_error(message)
        self._update_controls()

    def _release_decode_worker(self):
        # run() has emitted its last signal; let the thread wind down
        self._decode_worker.wait()
        self._decode_worker = None

    def _show_decode_error(self, message: str):
        self.statusBar().showMessage("Could not load track")
        QMessageBox.warning(self, "Cannot load track", message)

    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event):
        urls = [u for u in event.mimeData().urls() if u.isLocalFile()]
        if urls and self._decode_worker is None:
            self._load_path(urls[0].toLocalFile())

    # ── Studio events (GUI thread) ────────────────────────────────────────

    def _on_source_loaded(self, name, duration, channels, samplerate):
        self._file_label.setText(
            f"{name}  ({format_duration(duration)}, {channels} ch, "
            f"{samplerate / 1000:g} kHz)")
        self._waveform.set_drag(self._studio.drag())
        self.statusBar().showMessage(f"Loaded {name}")
        self._update_controls()

    def _on_source_cleared(self):
        self._file_label.setText("No track loaded")
        self._waveform.set_drag(None)
        self._waveform.set_frame(None)
        self._span_label.setText("")
        for field in (self._start_field, self._end_field):
            field.set_value(0.0)
        self._update_controls()

    def _on_crop_changed(self, start, end):
        self._waveform.set_frame(self._studio.waveform())
        self._start_field.set_value(start)
        self._end_field.set_value(end)
        mode = self._studio.mode
        self._span_label.setText(
            f"{end - start:.2f}s selected, "
            f"{(end - start) / mode.rate:.2f}s at {mode.rate:g}x")

    # ── Crop / parameters ─────────────────────────────────────────────────

    @Slot()
    def _on_fields_edited(self):
        crop = self._studio.crop
        if crop is None:
            return
        crop.set_range(self._start_field.value(), self._end_field.value())
        self._sync_fields()

    @Slot()
    def _sync_fields(self):
        crop = self._studio.crop
        if crop is not None:
            self._start_field.set_value(crop.start)
            self._end_field.set_value(crop.end)

    @Slot(int)
    def _on_volume_changed(self, value: int):
        volume = value * _VOLUME_STEP
        self._studio.set_volume(volume)
        self._volume_label.setText(f"{self._studio.volume:.2f}x")

    def _on_mode_clicked(self, button):
        self._studio.set_mode(button.property("mode_key"))
        if self._studio.crop is not None:
            self._on_crop_changed(self._studio.crop.start, self._studio.crop.end)
        dbg(f"mode: {self._studio.mode.key}")

    # ── Preview ───────────────────────────────────────────────────────────

    @Slot()
    def _on_preview(self):
        if not self._studio.loaded:
            return
        self._studio.toggle_preview()

    @Slot()
    def _on_preview_started(self):
        self._preview_btn.setText("Stop")

    @Slot(str)
    def _on_preview_finished(self, reason: str):
        self._preview_btn.setText("Preview")
        self._waveform.set_spectrum(None)
        dbg(f"preview finished: {reason}")

    @Slot(str)
    def _on_preview_error(self, message: str):
        self._preview_btn.setText("Preview")
        self.statusBar().showMessage(f"Audio output unavailable: {message}")

    # ── Export ────────────────────────────────────────────────────────────

    @Slot()
    def _on_export(self):
        studio = self._studio
        if not studio.loaded or self._export_worker is not None:
            return
        self._export_worker = ExportWorker(
            studio.exporter, self._bus, studio.buffer, studio.crop.range,
            studio.mode, studio.volume, studio.source_name or "audio")
        self._export_worker.progress_value.connect(self._on_export_progress)
        self._export_worker.finished.connect(self._on_export_done)
        self._export_worker.error.connect(self._on_export_error)
        self._progress.setRange(0, 0)
        self._progress.setVisible(True)
        self._export_worker.start()
        self.statusBar().showMessage("Rendering...")
        self._update_controls()

    @Slot(int, int)
    def _on_export_progress(self, index: int, total: int):
        self._progress.setRange(0, total)
        self._progress.setValue(index)
        self.statusBar().showMessage(f"Encoding MP3... {index}/{total}")

    def _end_export(self):
        self._export_worker.wait()
        self._export_worker = None
        self._progress.setVisible(False)
        self._update_controls()

    @Slot(object)
    def _on_export_done(self, job: ExportJob):
        self._end_export()
        path, _ = QFileDialog.getSaveFileName(
            self, "Save MP3", os.path.join(self._last_dir, job.filename),
            "MP3 files (*.mp3)")
        if not path:
            self.statusBar().showMessage("Export discarded")
            return
        try:
            with open(path, "wb") as f:
                f.write(job.data)
        except OSError as e:
            QMessageBox.critical(self, "Cannot save MP3", str(e))
            return
        self._last_dir = os.path.dirname(path)
        self.statusBar().showMessage(
            f"Saved {os.path.basename(path)} ({len(job.data) / 1024:.1f} KiB)")

    @Slot(str)
    def _on_export_error(self, message: str):
        self._end_export()
        self.statusBar().showMessage("Export failed")
        QMessageBox.critical(self, "Export failed", message)

    # ── Teardown ──────────────────────────────────────────────────────────

    def closeEvent(self, event):
        self._studio.stop_preview()
        self._bridge.detach()
        for worker in (self._decode_worker, self._export_worker):
            if worker is not None:
                worker.wait()
        super().closeEvent(event)


def main():
    t_main = time.perf_counter()
    attach_core_logging()

    t0 = time.perf_counter()
    app = QApplication(sys.argv)
    app.setStyle("Fusion")
    dbg(f"QApplication created: {(time.perf_counter() - t0) * 1000:.1f} ms")

    t0 = time.perf_counter()
    window = ForestricWindow()
    dbg(f"ForestricWindow created: {(time.perf_counter() - t0) * 1000:.1f} ms")

    window.show()
    dbg(f"main() total: {(time.perf_counter() - t_main) * 1000:.1f} ms")
    sys.exit(app.exec())
