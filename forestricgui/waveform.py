"""Waveform canvas with crop selection, edge drag and live spectrum."""

from __future__ import annotations

from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QColor, QPainter, QPainterPath, QPen
from PySide6.QtWidgets import QSizePolicy, QWidget

from forestriclib.crop import DragCapture
from forestriclib.waveform import (
    SpectrumCurve,
    WaveformFrame,
    spectrum_curve,
    x_to_fraction,
)

from .log import dbg
from .theme import COLORS, MARKER_COLOR, SELECTION_COLOR, SPECTRUM_COLOR, WAVE_COLOR


class WaveformWidget(QWidget):
    """Paints a :class:`WaveformFrame` scaled to the widget.

    The frame is laid out in its own logical width/height; painting
    scales it to whatever size the widget has.  Left-button presses pick
    the nearer crop edge and keep dragging it until release, even when
    the pointer leaves the widget.
    """

    drag_finished = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setMinimumHeight(160)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.setCursor(Qt.SizeHorCursor)
        self._frame: WaveformFrame | None = None
        self._spectrum: SpectrumCurve | None = None
        self._drag: DragCapture | None = None

    def set_frame(self, frame: WaveformFrame | None):
        self._frame = frame
        self.update()

    def set_drag(self, drag: DragCapture | None):
        if self._drag is not None and self._drag.active:
            self._drag.release()
            self.releaseMouse()
        self._drag = drag

    def set_spectrum(self, freq_data):
        """Overlay analyser bytes; ``None`` removes the overlay."""
        if freq_data is None or self._frame is None:
            self._spectrum = None
        else:
            self._spectrum = spectrum_curve(freq_data, self._frame.width,
                                            self._frame.height)
        self.update()

    # ── Painting ──────────────────────────────────────────────────────────

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)
        painter.fillRect(self.rect(), QColor(COLORS["bg_alt"]))

        frame = self._frame
        if frame is None:
            painter.setPen(QColor(COLORS["dim"]))
            painter.drawText(self.rect(), Qt.AlignCenter,
                             "Drop a track or click Open")
            painter.end()
            return

        painter.scale(self.width() / frame.width, self.height() / frame.height)

        painter.setPen(Qt.NoPen)
        for col in frame.columns:
            painter.fillRect(QRectF(col.x, col.top, 1.0, col.height), WAVE_COLOR)

        sel = frame.selection
        painter.fillRect(QRectF(sel.x, sel.y, sel.width, sel.height), SELECTION_COLOR)
        for marker in (frame.start_marker, frame.end_marker):
            painter.fillRect(QRectF(marker.x, marker.y, marker.width, marker.height),
                             MARKER_COLOR)

        if self._spectrum is not None:
            path = QPainterPath(QPointF(*self._spectrum.origin))
            for ctrl, end in self._spectrum.segments:
                path.quadTo(QPointF(*ctrl), QPointF(*end))
            pen = QPen(SPECTRUM_COLOR, 3.0)
            pen.setCosmetic(True)
            painter.setPen(pen)
            painter.setBrush(Qt.NoBrush)
            painter.drawPath(path)

        painter.end()

    # ── Pointer ───────────────────────────────────────────────────────────

    def _fraction(self, event) -> float:
        return x_to_fraction(event.position().x(), self.width())

    def mousePressEvent(self, event):
        if self._drag is None or event.button() != Qt.LeftButton:
            super().mousePressEvent(event)
            return
        edge = self._drag.begin(self._fraction(event))
        dbg(f"drag begin: {edge.value}")
        self.grabMouse()

    def mouseMoveEvent(self, event):
        if self._drag is not None and self._drag.active:
            self._drag.move(self._fraction(event))
        else:
            super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        if self._drag is not None and self._drag.active:
            self._drag.move(self._fraction(event))
            self._drag.release()
            self.releaseMouse()
            self.drag_finished.emit()
        else:
            super().mouseReleaseEvent(event)
