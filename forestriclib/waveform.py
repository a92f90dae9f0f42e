"""Waveform summary geometry: per-column peaks, selection overlay, spectrum curve.

Everything here is pure: the same buffer, crop and canvas size always give
the same frame, so callers redraw from scratch on every crop change.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from .models import CropRange, PcmBuffer

MARKER_WIDTH = 4
SPECTRUM_GAIN = 2.5  # divisor applied to the analyser curve height


@dataclass(frozen=True)
class WaveColumn:
    x: int
    top: float
    height: float


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class WaveformFrame:
    """Drawable snapshot of a buffer with its crop selection."""
    width: int
    height: int
    columns: tuple[WaveColumn, ...]
    selection: Rect
    start_marker: Rect
    end_marker: Rect


@dataclass(frozen=True)
class SpectrumCurve:
    """Quadratic-segment path: ``origin`` then ``(control, point)`` pairs."""
    origin: tuple[float, float]
    segments: tuple[tuple[tuple[float, float], tuple[float, float]], ...]


def column_peaks(samples: np.ndarray, width: int) -> tuple[np.ndarray, np.ndarray]:
    """Min/max amplitude of each ``ceil(n / width)``-sample block.

    Blocks that would start past the end of *samples* are dropped, so the
    result may hold fewer than *width* columns.
    """
    if width <= 0:
        raise ValueError(f"Canvas width must be positive, got {width}")
    n = len(samples)
    if n == 0:
        empty = np.zeros(0, dtype=np.float32)
        return empty, empty
    step = math.ceil(n / width)
    cols = math.ceil(n / step)
    padded = np.pad(np.asarray(samples, dtype=np.float32),
                    (0, cols * step - n), mode="edge")
    blocks = padded.reshape(cols, step)
    return blocks.min(axis=1), blocks.max(axis=1)


def render(buffer: PcmBuffer, crop: CropRange,
           width: int = 1200, height: int = 200) -> WaveformFrame:
    """Summarize channel 0 of *buffer* into one bar per pixel column."""
    amp = height / 2.0
    mins, maxs = column_peaks(buffer.channel(0), width)
    columns = tuple(
        WaveColumn(x=i, top=float((1.0 + lo) * amp),
                   height=float(max(1.0, (hi - lo) * amp)))
        for i, (lo, hi) in enumerate(zip(mins, maxs))
    )

    duration = buffer.duration
    start_x = crop.start / duration * width if duration > 0 else 0.0
    end_x = crop.end / duration * width if duration > 0 else 0.0
    half = MARKER_WIDTH / 2.0
    return WaveformFrame(
        width=width,
        height=height,
        columns=columns,
        selection=Rect(start_x, 0.0, end_x - start_x, float(height)),
        start_marker=Rect(start_x - half, 0.0, float(MARKER_WIDTH), float(height)),
        end_marker=Rect(end_x - half, 0.0, float(MARKER_WIDTH), float(height)),
    )


def spectrum_curve(freq_data: np.ndarray, width: int, height: int) -> SpectrumCurve | None:
    """Build the live spectrum overlay from analyser byte magnitudes."""
    n = len(freq_data)
    if n == 0:
        return None
    slice_w = width / n
    mid = height / 2.0

    def y_of(v) -> float:
        return mid - ((float(v) / 128.0) * height / SPECTRUM_GAIN) / 2.0

    origin = (0.0, y_of(freq_data[0]))
    segments = []
    x = slice_w
    for i in range(1, n):
        ctrl = (x - slice_w / 2.0, y_of(freq_data[i - 1]))
        segments.append((ctrl, (x, y_of(freq_data[i]))))
        x += slice_w
    return SpectrumCurve(origin=origin, segments=tuple(segments))


def x_to_fraction(x: float, width: float) -> float:
    """Pointer x (widget coordinates) to a clamped 0..1 fraction."""
    if width <= 0:
        return 0.0
    return max(0.0, min(1.0, x / width))
