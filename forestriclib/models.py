from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import numpy as np


class ForestricError(Exception):
    """Base class for all errors raised by the processing core."""
    pass


class RenderMode(Enum):
    """Fixed playback-rate presets.

    The rate is coupled to pitch: playing a buffer *rate* times faster
    raises it by ``12 * log2(rate)`` semitones.
    """
    STANDARD = ("standard", 2.5, "Days Render")
    SMOOTH = ("smooth", 2.0, "Abiw Render")

    def __init__(self, key: str, rate: float, label: str):
        self.key = key
        self.rate = rate
        self.label = label

    @property
    def semitones(self) -> float:
        return 12.0 * math.log2(self.rate)

    @classmethod
    def from_name(cls, name: str) -> RenderMode:
        for mode in cls:
            if mode.key == str(name).strip().lower():
                return mode
        raise ValueError(f"Unknown render mode: {name!r}")


class PlaybackState(Enum):
    IDLE = "idle"
    PLAYING = "playing"


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, eq=False)
class PcmBuffer:
    """Decoded audio, channel-separated float32 samples.

    Attributes:
        data:       Array shaped ``(channels, frame_count)``.  Marked
                    read-only on construction; derive new buffers instead
                    of mutating.
        samplerate: Frames per second (> 0).
    """
    data: np.ndarray
    samplerate: int

    def __post_init__(self):
        arr = np.array(self.data, dtype=np.float32)
        if arr.ndim == 1:
            arr = arr.reshape(1, -1)
        if arr.ndim != 2 or arr.shape[0] < 1:
            raise ValueError(
                f"PCM data must be shaped (channels, frames), got {arr.shape}")
        if int(self.samplerate) <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.samplerate}")
        arr.flags.writeable = False
        object.__setattr__(self, "data", arr)
        object.__setattr__(self, "samplerate", int(self.samplerate))

    @classmethod
    def from_channels(cls, channels: list, samplerate: int) -> PcmBuffer:
        lengths = {len(ch) for ch in channels}
        if len(lengths) > 1:
            raise ValueError(f"Channels differ in length: {sorted(lengths)}")
        return cls(np.vstack([np.asarray(ch, dtype=np.float32) for ch in channels]),
                   samplerate)

    @property
    def num_channels(self) -> int:
        return self.data.shape[0]

    @property
    def frame_count(self) -> int:
        return self.data.shape[1]

    @property
    def duration(self) -> float:
        return self.frame_count / self.samplerate

    def channel(self, index: int) -> np.ndarray:
        return self.data[index]

    @property
    def channels(self) -> list[np.ndarray]:
        return [self.data[i] for i in range(self.num_channels)]


@dataclass(frozen=True)
class CropRange:
    start: float
    end: float

    @property
    def span(self) -> float:
        return self.end - self.start


@dataclass
class ExportJob:
    """One MP3 export attempt.

    ``chunks`` holds encoder output in emission order while the job runs.
    On failure the list is cleared, so a FAILED job never exposes a
    truncated file.
    """
    job_id: str
    source_name: str
    mode: RenderMode
    volume: float
    crop: CropRange
    status: JobStatus = JobStatus.PENDING
    chunks: list[bytes] = field(default_factory=list)
    filename: str = ""
    error: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None

    @property
    def data(self) -> bytes | None:
        if self.status != JobStatus.COMPLETED:
            return None
        return b"".join(self.chunks)
