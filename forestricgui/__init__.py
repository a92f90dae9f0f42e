"""PySide6 front-end for Forestric."""

from .mainwindow import main

__all__ = ["main"]
