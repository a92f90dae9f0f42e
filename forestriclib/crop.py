"""Crop-range selection model and pointer-drag gesture state."""

from __future__ import annotations

import math
import re
from enum import Enum

from .config import MIN_GAP
from .events import EventBus
from .models import CropRange, ForestricError

_EPS = 1e-9

_INT_RE = re.compile(r"^\s*[+-]?\d+")
_FLOAT_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class CropError(ForestricError):
    """Raised when a crop range cannot satisfy its invariants."""
    pass


class Edge(Enum):
    START = "start"
    END = "end"


class CropModel:
    """Holds the selected ``[start, end)`` window of a source buffer.

    Every mutation clamps so that ``0 <= start``,
    ``start + MIN_GAP <= end`` and ``end <= duration`` hold afterwards.
    Emits ``crop.changed(start, end)`` on the event bus when the range
    actually moves.
    """

    def __init__(self, duration: float, event_bus: EventBus | None = None):
        if not math.isfinite(duration) or duration < MIN_GAP:
            raise CropError(
                f"Source is {duration:.3f}s long; at least {MIN_GAP}s is required")
        self._duration = float(duration)
        self._start = 0.0
        self._end = self._duration
        self._bus = event_bus

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def start(self) -> float:
        return self._start

    @property
    def end(self) -> float:
        return self._end

    @property
    def range(self) -> CropRange:
        return CropRange(self._start, self._end)

    def set_start(self, t: float) -> float:
        t = _finite(t)
        self._apply(max(0.0, min(t, self._end - MIN_GAP)), self._end)
        return self._start

    def set_end(self, t: float) -> float:
        t = _finite(t)
        self._apply(self._start, min(self._duration, max(t, self._start + MIN_GAP)))
        return self._end

    def set_range(self, start: float, end: float) -> CropRange:
        """Update both edges in one step.

        The start is clamped against the *requested* end rather than the
        current one, so two edits made together cannot be checked against
        a stale partner value.
        """
        start, end = _finite(start), _finite(end)
        end = min(self._duration, max(end, MIN_GAP))
        start = max(0.0, min(start, end - MIN_GAP))
        end = min(self._duration, max(end, start + MIN_GAP))
        self._apply(start, end)
        return self.range

    def set_from_pointer(self, fraction: float, edge: Edge) -> float:
        """Map a normalized horizontal position (0..1) onto *edge*."""
        fraction = max(0.0, min(1.0, _finite(fraction)))
        t = fraction * self._duration
        if edge is Edge.START:
            return self.set_start(t)
        return self.set_end(t)

    def pick_nearest_edge(self, t: float) -> Edge:
        """Edge closest to *t*; ties go to the end edge."""
        t = _finite(t)
        if abs(t - self._start) < abs(t - self._end):
            return Edge.START
        return Edge.END

    def reset(self) -> CropRange:
        self._apply(0.0, self._duration)
        return self.range

    def _apply(self, start: float, end: float):
        changed = (start, end) != (self._start, self._end)
        self._start, self._end = start, end
        self._check()
        if changed and self._bus is not None:
            self._bus.emit("crop.changed", start=self._start, end=self._end)

    def _check(self):
        if self._start < 0.0 or self._end > self._duration \
                or self._start + MIN_GAP > self._end + _EPS:
            raise CropError(
                f"Invalid crop range [{self._start}, {self._end}) "
                f"for duration {self._duration}")


class DragCapture:
    """State of one pointer-drag gesture over the waveform.

    The edge is chosen once in :meth:`begin` and kept until
    :meth:`release`, regardless of where the pointer travels.
    """

    def __init__(self, model: CropModel):
        self._model = model
        self._edge: Edge | None = None

    @property
    def active(self) -> bool:
        return self._edge is not None

    @property
    def edge(self) -> Edge | None:
        return self._edge

    def begin(self, fraction: float) -> Edge:
        fraction = max(0.0, min(1.0, _finite(fraction)))
        self._edge = self._model.pick_nearest_edge(fraction * self._model.duration)
        self._model.set_from_pointer(fraction, self._edge)
        return self._edge

    def move(self, fraction: float) -> bool:
        if self._edge is None:
            return False
        self._model.set_from_pointer(fraction, self._edge)
        return True

    def release(self):
        self._edge = None


# ---------------------------------------------------------------------------
# Numeric field helpers
# ---------------------------------------------------------------------------

def to_minutes_seconds(t: float) -> tuple[int, float]:
    """Split *t* into whole minutes and seconds rounded to 2 decimals."""
    m = int(math.floor(t / 60))
    return m, round(t % 60, 2)


def from_minutes_seconds(m, s) -> float:
    """Join minute and second field values into seconds.

    Text that does not start with a number counts as 0.
    """
    return _parse_int(m) * 60 + _parse_float(s)


def _parse_int(value) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else 0
    match = _INT_RE.match(str(value))
    return int(match.group(0)) if match else 0


def _parse_float(value) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) if math.isfinite(value) else 0.0
    match = _FLOAT_RE.match(str(value))
    return float(match.group(0)) if match else 0.0


def _finite(value: float) -> float:
    value = float(value)
    if math.isnan(value):
        raise ValueError("Time value must be a number")
    return value
