"""Shared fixtures: synthetic buffers, fake encoders, fake output streams."""

import io

import numpy as np
import pytest
import soundfile as sf

from forestriclib.audio import AudioContext, install_context
from forestriclib.models import PcmBuffer


def make_sine(seconds=1.0, samplerate=44100, channels=2, freq=440.0, amp=0.5):
    t = np.arange(int(round(seconds * samplerate))) / samplerate
    tone = (amp * np.sin(2 * np.pi * freq * t)).astype(np.float32)
    return PcmBuffer(np.vstack([tone] * channels), samplerate)


def make_ramp(frames, samplerate=10, channels=1):
    ramp = np.arange(frames, dtype=np.float32)
    return PcmBuffer(np.vstack([ramp] * channels), samplerate)


@pytest.fixture
def sine_buffer():
    return make_sine()


@pytest.fixture
def mono_buffer():
    return make_sine(channels=1)


def wav_bytes(buffer: PcmBuffer) -> bytes:
    out = io.BytesIO()
    sf.write(out, buffer.data.T, buffer.samplerate, format="WAV", subtype="FLOAT")
    return out.getvalue()


@pytest.fixture
def stereo_wav():
    return wav_bytes(make_sine(seconds=1.0, samplerate=8000))


# ---------------------------------------------------------------------------
# Encoder double
# ---------------------------------------------------------------------------

class FakeEncoder:
    """Records every block; emits a chunk for every second block."""

    instances = []

    def __init__(self, samplerate, channels=2, bitrate_kbps=128):
        self.samplerate = samplerate
        self.channels = channels
        self.bitrate_kbps = bitrate_kbps
        self.blocks = []
        self.finished = False
        FakeEncoder.instances.append(self)

    def push_block(self, left, right=None):
        assert not self.finished
        index = len(self.blocks)
        self.blocks.append((np.array(left), None if right is None else np.array(right)))
        if index % 2 == 1:
            return f"B{index};".encode()
        return b""

    def finish(self):
        assert not self.finished
        self.finished = True
        return b"TAIL"


@pytest.fixture
def fake_encoder():
    FakeEncoder.instances = []
    yield FakeEncoder
    FakeEncoder.instances = []


# ---------------------------------------------------------------------------
# Output stream double
# ---------------------------------------------------------------------------

class FakeStop(Exception):
    pass


class FakeStream:
    """Stands in for a sounddevice OutputStream.

    ``run()`` drives the callback synchronously until it raises the stop
    signal, then calls ``finished_callback`` like PortAudio does.
    """

    blocksize = 256

    def __init__(self, samplerate, channels, dtype, callback, finished_callback):
        self.samplerate = samplerate
        self.channels = channels
        self.dtype = dtype
        self.callback = callback
        self.finished_callback = finished_callback
        self.started = False
        self.stopped = False
        self.closed = False
        self.blocks = []
        self._done = False

    def start(self):
        self.started = True

    def run(self, max_blocks=100000):
        for _ in range(max_blocks):
            outdata = np.zeros((self.blocksize, self.channels), dtype=np.float32)
            try:
                self.callback(outdata, self.blocksize, None, None)
            except FakeStop:
                self.blocks.append(outdata)
                break
            self.blocks.append(outdata)
        self._finish()

    def stop(self):
        self.stopped = True
        self._finish()

    def close(self):
        self.closed = True

    def _finish(self):
        if self.started and not self._done:
            self._done = True
            self.finished_callback()


class StreamRecorder:
    """Stream factory that remembers every stream it created."""

    def __init__(self, fail=False):
        self.streams = []
        self.fail = fail

    def __call__(self, **kwargs):
        if self.fail:
            raise RuntimeError("No output device")
        stream = FakeStream(**kwargs)
        self.streams.append(stream)
        return stream

    @property
    def last(self):
        return self.streams[-1]


@pytest.fixture
def streams():
    return StreamRecorder()


@pytest.fixture(autouse=True)
def fake_context(streams):
    """Process-wide audio context whose streams never reach PortAudio."""
    ctx = AudioContext(stream_factory=streams, callback_stop=FakeStop)
    previous = install_context(ctx)
    yield ctx
    install_context(previous)


# ---------------------------------------------------------------------------
# Frame clock double
# ---------------------------------------------------------------------------

class ManualFrameClock:
    def __init__(self):
        self.callback = None
        self.starts = 0
        self.cancels = 0

    @property
    def running(self):
        return self.callback is not None

    def start(self, callback):
        self.starts += 1
        self.callback = callback

    def cancel(self):
        self.cancels += 1
        self.callback = None

    def tick(self):
        if self.callback is not None:
            self.callback()


@pytest.fixture
def frame_clock():
    return ManualFrameClock()


class Recorder:
    """Collects events from an EventBus as ``(type, data)`` tuples."""

    def __init__(self, bus, *event_types):
        self.events = []
        for event_type in event_types:
            bus.subscribe(event_type, self._handler(event_type))

    def _handler(self, event_type):
        def handle(**data):
            self.events.append((event_type, data))
        return handle

    def of(self, event_type):
        return [data for t, data in self.events if t == event_type]

    @property
    def types(self):
        return [t for t, _ in self.events]
