"""Color palette and dark theme."""

from __future__ import annotations

from PySide6.QtGui import QColor, QPalette
from PySide6.QtWidgets import QApplication


COLORS = {
    "accent": "#d13a16",
    "accent_hover": "#e5512c",
    "problems": "#ff4444",
    "dim": "#888888",
    "text": "#dddddd",
    "heading": "#ffffff",
    "bg": "#161616",
    "bg_alt": "#222222",
    "panel": "#2d2d2d",
}

WAVE_COLOR = QColor(255, 255, 255, 70)
SELECTION_COLOR = QColor(209, 58, 22, 38)
MARKER_COLOR = QColor(COLORS["accent"])
SPECTRUM_COLOR = QColor(COLORS["accent"])


STYLESHEET = """
    QMainWindow { background-color: #161616; }
    QWidget { color: #dddddd; }
    QLabel#title { color: #ffffff; font-size: 18pt; font-weight: bold; }
    QLabel#dim { color: #888888; }
    QPushButton {
        background-color: #2d2d2d; border: 1px solid #444;
        border-radius: 4px; padding: 6px 14px;
    }
    QPushButton:hover { background-color: #383838; }
    QPushButton:disabled { color: #666666; border-color: #333; }
    QPushButton:checked, QPushButton#primary {
        background-color: #d13a16; border-color: #d13a16; color: #ffffff;
    }
    QPushButton#primary:hover { background-color: #e5512c; }
    QPushButton#primary:disabled { background-color: #5a2a1e; color: #aaaaaa; }
    QLineEdit {
        background-color: #222222; border: 1px solid #444;
        border-radius: 3px; padding: 3px 6px;
    }
    QSlider::groove:horizontal { height: 4px; background: #444; border-radius: 2px; }
    QSlider::handle:horizontal {
        background: #d13a16; width: 14px; margin: -6px 0; border-radius: 7px;
    }
    QProgressBar {
        background-color: #2d2d2d; border: 1px solid #555; border-radius: 4px;
        text-align: center; color: #dddddd; height: 16px;
    }
    QProgressBar::chunk { background-color: #d13a16; border-radius: 3px; }
"""


def apply_dark_theme(window) -> None:
    """Apply the dark palette and stylesheet to the application and window."""
    app = QApplication.instance()

    palette = QPalette()
    bg = QColor(COLORS["bg"])
    bg_alt = QColor(COLORS["bg_alt"])
    text = QColor(COLORS["text"])
    accent = QColor(COLORS["accent"])

    palette.setColor(QPalette.Window, bg)
    palette.setColor(QPalette.WindowText, text)
    palette.setColor(QPalette.Base, bg_alt)
    palette.setColor(QPalette.AlternateBase, QColor(COLORS["panel"]))
    palette.setColor(QPalette.Text, text)
    palette.setColor(QPalette.Button, QColor(COLORS["panel"]))
    palette.setColor(QPalette.ButtonText, text)
    palette.setColor(QPalette.Highlight, accent)
    palette.setColor(QPalette.HighlightedText, QColor("#ffffff"))

    palette.setColor(QPalette.Disabled, QPalette.Text, QColor("#666666"))
    palette.setColor(QPalette.Disabled, QPalette.ButtonText, QColor("#666666"))

    app.setPalette(palette)
    window.setStyleSheet(STYLESHEET)
