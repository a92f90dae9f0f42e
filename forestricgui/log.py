"""Debug output for the Forestric GUI.

Usage::

    from forestricgui.log import dbg

    dbg("Export job started")

Nothing is printed unless ``FORESTRIC_DEBUG`` is ``1`` or ``true``
(case-insensitive).  Lines look like ``[HH:MM:SS.mmm Caller] message``
where *Caller* is the calling class, or the module for plain functions.
:func:`attach_core_logging` sends the ``forestriclib`` loggers to the same
stream in the same format, so core and GUI lines interleave in order.
"""

from __future__ import annotations

import inspect
import logging
import os
import sys
import time

_ENABLED: bool | None = None


def _is_enabled() -> bool:
    global _ENABLED
    if _ENABLED is None:
        val = os.environ.get("FORESTRIC_DEBUG", "").strip().lower()
        _ENABLED = val in ("1", "true")
    return _ENABLED


def _stamp(when: float) -> str:
    return time.strftime("%H:%M:%S", time.localtime(when)) + f".{int((when % 1) * 1000):03d}"


def _caller_name() -> str:
    frame = inspect.currentframe()
    try:
        caller = frame.f_back.f_back if frame and frame.f_back else None
        if caller is None:
            return "?"
        self_obj = caller.f_locals.get("self")
        if self_obj is not None:
            return type(self_obj).__name__
        mod = caller.f_globals.get("__name__", "")
        return mod.rsplit(".", 1)[-1] if mod else "?"
    finally:
        del frame


def dbg(msg: str) -> None:
    if not _is_enabled():
        return
    print(f"[{_stamp(time.time())} {_caller_name()}] {msg}",
          file=sys.stderr, flush=True)


class _DebugFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        name = record.name.rsplit(".", 1)[-1]
        return f"[{_stamp(record.created)} {name}] {record.getMessage()}"


def attach_core_logging() -> bool:
    """Route ``forestriclib`` log records to stderr while debugging.

    Returns True if a handler was attached.
    """
    if not _is_enabled():
        return False
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_DebugFormatter())
    core = logging.getLogger("forestriclib")
    core.addHandler(handler)
    core.setLevel(logging.DEBUG)
    return True
