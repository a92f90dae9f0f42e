"""Tests for offline rendering of the cropped, rate-shifted signal."""

import numpy as np
import pytest

from forestriclib.graph import RenderError
from forestriclib.models import CropRange, RenderMode
from forestriclib.offline import output_frame_count, render_offline

from tests.conftest import make_ramp, make_sine


class TestOutputFrameCount:
    def test_minimum_crop_standard(self):
        assert output_frame_count(CropRange(0.0, 0.1), 2.5, 44100) == 1764

    def test_one_second_standard(self):
        assert output_frame_count(CropRange(0.0, 1.0), 2.5, 44100) == 17640

    def test_one_second_smooth(self):
        assert output_frame_count(CropRange(2.0, 3.0), 2.0, 48000) == 24000


class TestRenderOffline:
    def test_shape_follows_source(self, sine_buffer):
        out = render_offline(sine_buffer, CropRange(0.0, 1.0),
                             RenderMode.STANDARD.rate, 1.0)
        assert out.num_channels == 2
        assert out.samplerate == 44100
        assert out.frame_count == 17640

    def test_mono_stays_mono(self, mono_buffer):
        out = render_offline(mono_buffer, CropRange(0.0, 0.5), 2.0, 1.0)
        assert out.num_channels == 1
        assert out.frame_count == 11025

    def test_rate_and_offset_applied(self):
        buffer = make_ramp(100, samplerate=10)
        out = render_offline(buffer, CropRange(2.0, 4.0), 2.0, 1.0)
        np.testing.assert_allclose(out.channel(0), [20, 22, 24, 26, 28, 30, 32, 34, 36, 38],
                                   atol=1e-4)

    def test_volume_scales_output(self):
        buffer = make_ramp(100, samplerate=10)
        out = render_offline(buffer, CropRange(0.0, 1.0), 1.0, 0.5)
        np.testing.assert_allclose(out.channel(0), np.arange(10) * 0.5, atol=1e-5)

    def test_source_untouched(self, sine_buffer):
        before = sine_buffer.data.copy()
        render_offline(sine_buffer, CropRange(0.1, 0.4), 2.5, 2.0)
        np.testing.assert_array_equal(sine_buffer.data, before)

    def test_zero_frames_rejected(self):
        buffer = make_sine(seconds=1.0, samplerate=8000)
        with pytest.raises(RenderError):
            render_offline(buffer, CropRange(0.0, 0.0001), 2.5, 1.0)

    def test_non_positive_rate_rejected(self, sine_buffer):
        with pytest.raises(RenderError):
            render_offline(sine_buffer, CropRange(0.0, 1.0), 0.0, 1.0)
