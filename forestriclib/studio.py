"""Studio: one loaded track plus its crop, gain, mode, preview and export."""

from __future__ import annotations

import logging
import os
from typing import Any

from .audio import DecodeError, decode
from .config import default_config, merge_configs, validate_config
from .crop import CropError, CropModel, DragCapture
from .events import EventBus
from .export import ExportCoordinator
from .models import ExportJob, ForestricError, PcmBuffer, RenderMode
from .playback import PlaybackEngine
from .waveform import WaveformFrame, render

log = logging.getLogger(__name__)


class Studio:
    """Holds the working state both front-ends drive.

    Loading a track initializes the crop to the full duration.  Every crop
    change is announced as ``crop.changed`` so views can redraw.  The
    decoded buffer is never modified; preview and export read it.
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        event_bus: EventBus | None = None,
        *,
        playback: PlaybackEngine | None = None,
        exporter: ExportCoordinator | None = None,
    ):
        self.config = merge_configs(default_config(), config or {})
        validate_config(self.config)
        self.event_bus = event_bus or EventBus()
        self.mode = RenderMode.from_name(self.config["mode"])
        self._volume = float(self.config["volume"])
        self.playback = playback or PlaybackEngine(
            event_bus=self.event_bus,
            fft_size=self.config["fft_size"],
            time_constant=self.config["gain_time_constant"],
            smoothing=self.config["analyser_smoothing"],
        )
        self.exporter = exporter or ExportCoordinator(event_bus=self.event_bus)
        self.buffer: PcmBuffer | None = None
        self.source_name: str | None = None
        self.crop: CropModel | None = None

    @property
    def loaded(self) -> bool:
        return self.buffer is not None

    # -- source ------------------------------------------------------------

    def load_bytes(self, raw: bytes | None, name: str) -> PcmBuffer | None:
        """Decode *raw* as the new working track.

        ``None`` means nothing was selected and leaves the studio as is.
        A :class:`DecodeError` leaves the studio with no track loaded.
        """
        if raw is None:
            return None
        self.playback.stop()
        try:
            buffer = decode(raw)
        except DecodeError:
            self.clear()
            raise
        return self.set_source(buffer, name)

    def set_source(self, buffer: PcmBuffer, name: str) -> PcmBuffer:
        """Adopt an already decoded *buffer* as the working track.

        The GUI decodes on a worker thread and hands the result over here,
        on the thread that owns the event subscribers.
        """
        self.playback.stop()
        try:
            crop = CropModel(buffer.duration, self.event_bus)
        except CropError as e:
            self.clear()
            raise DecodeError(f"{os.path.basename(name)}: {e}") from e

        self.buffer = buffer
        self.source_name = os.path.basename(name)
        self.crop = crop
        log.info("Loaded %s (%.2fs, %d ch, %d Hz)", self.source_name,
                 buffer.duration, buffer.num_channels, buffer.samplerate)
        self.event_bus.emit("source.loaded", name=self.source_name,
                            duration=buffer.duration,
                            channels=buffer.num_channels,
                            samplerate=buffer.samplerate)
        self.event_bus.emit("crop.changed", start=crop.start, end=crop.end)
        return buffer

    def load_file(self, filepath: str) -> PcmBuffer:
        try:
            with open(filepath, "rb") as f:
                raw = f.read()
        except OSError as e:
            self.clear()
            raise DecodeError(f"Cannot read {os.path.basename(filepath)}: {e}") from e
        return self.load_bytes(raw, filepath)

    def clear(self):
        self.playback.stop()
        had_source = self.buffer is not None
        self.buffer = None
        self.source_name = None
        self.crop = None
        if had_source:
            self.event_bus.emit("source.cleared")

    # -- parameters --------------------------------------------------------

    @property
    def volume(self) -> float:
        return self._volume

    def set_volume(self, volume: float):
        self._volume = max(0.0, min(2.0, float(volume)))
        self.playback.set_volume(self._volume)

    def set_mode(self, mode: RenderMode | str):
        if not isinstance(mode, RenderMode):
            mode = RenderMode.from_name(mode)
        self.mode = mode

    def drag(self) -> DragCapture | None:
        return DragCapture(self.crop) if self.crop is not None else None

    def waveform(self, width: int | None = None,
                 height: int | None = None) -> WaveformFrame | None:
        if self.buffer is None or self.crop is None:
            return None
        return render(self.buffer, self.crop.range,
                      width or self.config["waveform_width"],
                      height or self.config["waveform_height"])

    # -- preview / export --------------------------------------------------

    def toggle_preview(self) -> bool:
        crop = self.crop.range if self.crop is not None else None
        return self.playback.toggle(self.buffer, crop, self.mode, self._volume)

    def stop_preview(self):
        self.playback.stop()

    def export(self) -> ExportJob:
        """Render and encode the current crop.  Raises on failure.

        Failures leave the loaded buffer and crop untouched.
        """
        if self.buffer is None or self.crop is None:
            raise ForestricError("No track loaded")
        return self.exporter.run(self.buffer, self.crop.range, self.mode,
                                 self._volume, self.source_name or "audio")
