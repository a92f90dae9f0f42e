"""
Forestric GUI: PySide6 front-end for cropping and chipmunk-pitch export.

Usage:
    python forestric-gui.py

Requires: PySide6 (install via `pip install forestric[gui]`)
"""

from forestricgui import main

if __name__ == "__main__":
    main()
