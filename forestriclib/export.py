from __future__ import annotations

import logging
import math
import os
import re
import threading
from datetime import datetime
from typing import Callable
from uuid import uuid4

from .config import MP3_BITRATE_KBPS, MP3_BLOCK_SIZE, OUTPUT_SUFFIX
from .encoder import EncodeError, Mp3StreamEncoder, quantize
from .events import EventBus
from .models import (
    CropRange,
    ExportJob,
    ForestricError,
    JobStatus,
    PcmBuffer,
    RenderMode,
)
from .offline import render_offline

log = logging.getLogger(__name__)

_EXT_RE = re.compile(r"\.[^/.]+$")


class ExportBusyError(ForestricError):
    """Raised when an export is requested while another one is running."""
    pass


def export_filename(source_name: str) -> str:
    """``song.wav`` -> ``song_forestric.mp3``."""
    base = _EXT_RE.sub("", os.path.basename(source_name))
    return f"{base}{OUTPUT_SUFFIX}.mp3"


def export_mp3(
    buffer: PcmBuffer,
    *,
    bitrate_kbps: int = MP3_BITRATE_KBPS,
    encoder_factory: Callable[..., Mp3StreamEncoder] = Mp3StreamEncoder,
    event_bus: EventBus | None = None,
    job_id: str | None = None,
) -> list[bytes]:
    """Encode *buffer* and return the MP3 chunks in emission order.

    Mono buffers feed the same samples to both encoder inputs.  The last
    chunk, when non-empty, is the encoder flush.
    """
    left = quantize(buffer.channel(0))
    right = quantize(buffer.channel(1)) if buffer.num_channels > 1 else left
    channels = 2 if buffer.num_channels > 1 else 1

    try:
        encoder = encoder_factory(buffer.samplerate, channels, bitrate_kbps)
        chunks: list[bytes] = []
        total = math.ceil(len(left) / MP3_BLOCK_SIZE)
        for index, i in enumerate(range(0, len(left), MP3_BLOCK_SIZE)):
            chunk = encoder.push_block(left[i:i + MP3_BLOCK_SIZE],
                                       right[i:i + MP3_BLOCK_SIZE])
            if chunk:
                chunks.append(bytes(chunk))
            if event_bus:
                event_bus.emit("export.block", job_id=job_id,
                               index=index + 1, total=total)
        tail = encoder.finish()
        if tail:
            chunks.append(bytes(tail))
    except EncodeError:
        raise
    except (OSError, RuntimeError, ValueError) as e:
        raise EncodeError(f"MP3 encoding failed: {e}") from e
    return chunks


class ExportCoordinator:
    """Runs one export at a time: offline render, then MP3 encode.

    A second :meth:`run` while one is in flight raises
    :class:`ExportBusyError` instead of touching the running job.
    """

    def __init__(
        self,
        event_bus: EventBus | None = None,
        encoder_factory: Callable[..., Mp3StreamEncoder] = Mp3StreamEncoder,
        bitrate_kbps: int = MP3_BITRATE_KBPS,
    ):
        self._bus = event_bus
        self._encoder_factory = encoder_factory
        self._bitrate = bitrate_kbps
        self._busy = False
        self._lock = threading.Lock()
        self.last_job: ExportJob | None = None

    @property
    def busy(self) -> bool:
        return self._busy

    def run(self, buffer: PcmBuffer, crop: CropRange, mode: RenderMode,
            volume: float, source_name: str) -> ExportJob:
        with self._lock:
            if self._busy:
                raise ExportBusyError("An export is already running")
            self._busy = True

        job = ExportJob(
            job_id=str(uuid4()),
            source_name=source_name,
            mode=mode,
            volume=volume,
            crop=crop,
            status=JobStatus.RUNNING,
        )
        self.last_job = job
        if self._bus:
            self._bus.emit("export.start", job_id=job.job_id)

        try:
            rendered = render_offline(buffer, crop, mode.rate, volume)
            job.chunks = export_mp3(
                rendered,
                bitrate_kbps=self._bitrate,
                encoder_factory=self._encoder_factory,
                event_bus=self._bus,
                job_id=job.job_id,
            )
            job.filename = export_filename(source_name)
            job.status = JobStatus.COMPLETED
        except Exception as e:
            job.chunks = []
            job.status = JobStatus.FAILED
            job.error = str(e)
            log.warning("Export %s failed: %s", job.job_id, e)
            if self._bus:
                self._bus.emit("export.failed", job_id=job.job_id, error=str(e))
            raise
        finally:
            job.completed_at = datetime.now()
            with self._lock:
                self._busy = False

        log.info("Export %s: %s (%d bytes)", job.job_id, job.filename, len(job.data))
        if self._bus:
            self._bus.emit("export.complete", job_id=job.job_id,
                           filename=job.filename, size=len(job.data))
        return job


def save_export(job: ExportJob, directory: str) -> str:
    """Write a completed job's MP3 into *directory*; returns the file path."""
    data = job.data
    if data is None:
        raise ValueError(f"Export {job.job_id} has no completed output")
    os.makedirs(directory or ".", exist_ok=True)
    path = os.path.join(directory, job.filename)
    with open(path, "wb") as f:
        f.write(data)
    return path
