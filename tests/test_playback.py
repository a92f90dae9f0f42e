"""Tests for the preview engine state machine using fake output streams."""

import numpy as np
import pytest

from forestriclib.audio import AudioContext
from forestriclib.events import EventBus
from forestriclib.models import CropRange, PlaybackState, RenderMode
from forestriclib.playback import PlaybackEngine, ThreadFrameClock

from tests.conftest import FakeStop, FakeStream, Recorder, StreamRecorder, make_sine

EVENTS = ("playback.started", "playback.frame", "playback.finished", "playback.error")


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def events(bus):
    return Recorder(bus, *EVENTS)


@pytest.fixture
def engine(fake_context, frame_clock, bus):
    return PlaybackEngine(fake_context, frame_clock, bus)


@pytest.fixture
def buffer():
    return make_sine(seconds=1.0, samplerate=8000)


class TestIdle:
    def test_initial_state(self, engine):
        assert engine.state is PlaybackState.IDLE
        assert not engine.is_playing
        assert engine.spectrum() is None

    def test_stop_when_idle_is_noop(self, engine, events, streams):
        engine.stop()
        engine.stop()
        assert events.events == []
        assert streams.streams == []

    def test_start_without_buffer(self, engine, events):
        assert engine.start(None, CropRange(0.0, 1.0), RenderMode.STANDARD) is False
        assert engine.state is PlaybackState.IDLE
        assert events.events == []


class TestPlaying:
    def test_start_opens_stream(self, engine, events, streams, frame_clock, buffer):
        assert engine.start(buffer, CropRange(0.2, 0.8), RenderMode.STANDARD, 1.0)
        assert engine.state is PlaybackState.PLAYING
        stream = streams.last
        assert stream.started
        assert stream.channels == 2
        assert stream.samplerate == 8000
        assert frame_clock.running
        assert events.of("playback.started") == [
            {"mode": RenderMode.STANDARD, "start": 0.2, "end": 0.8}]

    def test_start_while_playing_is_noop(self, engine, streams, buffer):
        engine.start(buffer, CropRange(0.0, 1.0), RenderMode.SMOOTH)
        assert engine.start(buffer, CropRange(0.0, 1.0), RenderMode.SMOOTH) is False
        assert len(streams.streams) == 1

    def test_frame_tick_emits_spectrum(self, engine, events, frame_clock, streams, buffer):
        engine.start(buffer, CropRange(0.0, 1.0), RenderMode.STANDARD)
        streams.last.callback(np.zeros((256, 2), dtype=np.float32), 256, None, None)
        frame_clock.tick()
        frames = events.of("playback.frame")
        assert len(frames) == 1
        data = frames[0]["data"]
        assert data.dtype == np.uint8
        assert len(data) == 256

    def test_natural_end(self, engine, events, streams, frame_clock, buffer):
        engine.start(buffer, CropRange(0.0, 0.5), RenderMode.STANDARD)
        streams.last.run()
        assert engine.state is PlaybackState.IDLE
        assert not frame_clock.running
        assert events.of("playback.finished") == [{"reason": "ended"}]

    def test_played_samples_are_rate_shifted(self, engine, streams, buffer):
        engine.start(buffer, CropRange(0.0, 0.5), RenderMode.SMOOTH)
        stream = streams.last
        stream.run()
        played = np.concatenate(stream.blocks)[:, 0]
        # 0.5s at 2x and 8 kHz is 2000 frames; the rest of the last block is silence
        assert np.abs(played[:2000]).max() > 0.1
        assert not played[2000:].any()

    def test_stop(self, engine, events, streams, frame_clock, buffer):
        engine.start(buffer, CropRange(0.0, 1.0), RenderMode.STANDARD)
        engine.stop()
        engine.stop()
        assert engine.state is PlaybackState.IDLE
        assert streams.last.closed
        assert not frame_clock.running
        assert events.of("playback.finished") == [{"reason": "stopped"}]

    def test_restart_after_stop(self, engine, streams, buffer):
        engine.start(buffer, CropRange(0.0, 1.0), RenderMode.STANDARD)
        engine.stop()
        assert engine.start(buffer, CropRange(0.0, 1.0), RenderMode.SMOOTH)
        assert len(streams.streams) == 2

    def test_toggle(self, engine, buffer):
        crop = CropRange(0.0, 1.0)
        assert engine.toggle(buffer, crop, RenderMode.STANDARD) is True
        assert engine.toggle(buffer, crop, RenderMode.STANDARD) is False
        assert engine.state is PlaybackState.IDLE


class TestVolume:
    def test_volume_while_playing_sets_gain_target(self, engine, buffer):
        engine.start(buffer, CropRange(0.0, 1.0), RenderMode.STANDARD, 1.0)
        engine.set_volume(0.25)
        gain = engine._session.graph.gain
        assert gain.target == 0.25
        assert gain.value == 1.0

    def test_volume_while_idle_used_on_next_start(self, engine, buffer):
        engine.set_volume(1.5)
        engine.start(buffer, CropRange(0.0, 1.0), RenderMode.STANDARD)
        assert engine._session.graph.gain.value == 1.5


class TestStreamFailure:
    def test_open_failure_stays_idle(self, bus, events, frame_clock, buffer):
        ctx = AudioContext(stream_factory=StreamRecorder(fail=True), callback_stop=FakeStop)
        engine = PlaybackEngine(ctx, frame_clock, bus)
        assert engine.start(buffer, CropRange(0.0, 1.0), RenderMode.STANDARD) is False
        assert engine.state is PlaybackState.IDLE
        assert not frame_clock.running
        assert events.of("playback.error") == [{"message": "No output device"}]


class EndsOnStart(FakeStream):
    """A stream so short that it plays out before ``start()`` returns."""

    def start(self):
        super().start()
        self.run()


class TestImmediateEnd:
    @pytest.fixture
    def quick_engine(self, bus, frame_clock):
        ctx = AudioContext(stream_factory=lambda **kw: EndsOnStart(**kw),
                           callback_stop=FakeStop)
        return PlaybackEngine(ctx, frame_clock, bus)

    def test_frame_clock_not_left_running(self, quick_engine, events, frame_clock, buffer):
        assert quick_engine.start(buffer, CropRange(0.0, 0.1), RenderMode.SMOOTH)
        assert quick_engine.state is PlaybackState.IDLE
        assert not frame_clock.running
        assert frame_clock.starts == 1
        assert events.of("playback.finished") == [{"reason": "ended"}]
        assert events.of("playback.started") == []

    def test_thread_clock_stopped(self, bus, buffer):
        ctx = AudioContext(stream_factory=lambda **kw: EndsOnStart(**kw),
                           callback_stop=FakeStop)
        clock = ThreadFrameClock(interval=0.001)
        engine = PlaybackEngine(ctx, clock, bus)
        engine.start(buffer, CropRange(0.0, 0.1), RenderMode.SMOOTH)
        assert not clock.running

    def test_can_start_again(self, quick_engine, buffer):
        quick_engine.start(buffer, CropRange(0.0, 0.1), RenderMode.SMOOTH)
        assert quick_engine.start(buffer, CropRange(0.0, 0.5), RenderMode.STANDARD)


class TestThreadFrameClock:
    def test_cancel_stops_ticks(self):
        clock = ThreadFrameClock(interval=0.001)
        clock.start(lambda: None)
        assert clock.running
        clock.cancel()
        assert not clock.running
