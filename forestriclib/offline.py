from __future__ import annotations

import logging
import math

from .audio import acquire_context
from .graph import OfflineClock, RenderError, RenderGraph
from .models import CropRange, PcmBuffer

log = logging.getLogger(__name__)


def output_frame_count(crop: CropRange, rate: float, samplerate: int) -> int:
    """Frames produced by playing *crop* at *rate*: ``floor(span / rate * sr)``."""
    return math.floor((crop.end - crop.start) / rate * samplerate)


def render_offline(buffer: PcmBuffer, crop: CropRange, rate: float,
                   volume: float) -> PcmBuffer:
    """Render the cropped, rate-shifted, gain-scaled window into a new buffer.

    The result has the source's channel count and sample rate and exactly
    :func:`output_frame_count` frames.  Runs to completion before
    returning; nothing partial is ever handed back.
    """
    if not rate > 0:
        raise RenderError(f"Playback rate must be positive, got {rate}")
    frames = output_frame_count(crop, rate, buffer.samplerate)
    if frames <= 0:
        raise RenderError(
            f"Crop [{crop.start:.3f}s, {crop.end:.3f}s) at {rate}x "
            f"yields {frames} frames")

    context = acquire_context()
    try:
        graph = RenderGraph(
            buffer,
            offset=crop.start,
            duration=crop.end - crop.start,
            rate=rate,
            volume=volume,
        )
        data = OfflineClock(frames, context.render_quantum).drive(graph)
    except RenderError:
        raise
    except (MemoryError, ValueError) as e:
        raise RenderError(f"Offline render failed: {e}") from e

    log.debug("Offline render: %d frames at %d Hz (%.2fx)",
              frames, buffer.samplerate, rate)
    return PcmBuffer(data, buffer.samplerate)
