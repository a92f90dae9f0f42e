"""Tests for the forestric command line front-end."""

import argparse
import os

import pytest

import forestric
from forestriclib.events import EventBus
from forestriclib.export import ExportCoordinator
from forestriclib.studio import Studio


@pytest.fixture
def fake_studio(monkeypatch, fake_encoder):
    def factory(config):
        bus = EventBus()
        return Studio(config, bus, exporter=ExportCoordinator(bus, fake_encoder))
    monkeypatch.setattr(forestric, "Studio", factory)
    return fake_encoder


@pytest.fixture
def tone_file(tmp_path, stereo_wav):
    path = tmp_path / "tone.wav"
    path.write_bytes(stereo_wav)
    return str(path)


class TestTimeValue:
    def test_seconds(self):
        assert forestric.time_value("12.5") == 12.5

    def test_minutes_seconds(self):
        assert forestric.time_value("1:15.5") == 75.5

    @pytest.mark.parametrize("text", ["abc", "-1"])
    def test_invalid(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            forestric.time_value(text)


class TestParseArguments:
    def test_defaults(self):
        args = forestric.parse_arguments(["song.mp3"])
        assert args.start == 0.0
        assert args.end is None
        assert args.mode == "standard"
        assert args.volume == 1.0
        assert args.output_folder is None

    @pytest.mark.parametrize("argv", [
        ["song.mp3", "--volume", "2.5"],
        ["song.mp3", "--start", "5", "--end", "4"],
        ["song.mp3", "--mode", "turbo"],
    ])
    def test_rejected(self, argv):
        with pytest.raises(SystemExit):
            forestric.parse_arguments(argv)


class TestProcessFile:
    def test_missing_file(self, tmp_path, capsys):
        assert forestric.process_file([str(tmp_path / "nope.wav")]) == 1
        assert "File not found" in capsys.readouterr().out

    def test_undecodable_file(self, tmp_path, capsys):
        path = tmp_path / "bad.wav"
        path.write_bytes(b"not audio at all" * 64)
        assert forestric.process_file([str(path)]) == 1
        assert "Decode error" in capsys.readouterr().out

    def test_end_to_end(self, tmp_path, tone_file, fake_studio):
        out_dir = tmp_path / "out"
        code = forestric.process_file([
            tone_file, "--start", "0.25", "--end", "0:00.75",
            "--mode", "smooth", "--output_folder", str(out_dir),
        ])
        assert code == 0
        path = out_dir / "tone_forestric.mp3"
        assert path.is_file()
        assert path.read_bytes().endswith(b"TAIL")
        # 0.5s at 2x and 8 kHz
        enc = fake_studio.instances[0]
        assert sum(len(left) for left, _ in enc.blocks) == 2000

    def test_output_next_to_source(self, tone_file, fake_studio):
        assert forestric.process_file([tone_file]) == 0
        expected = os.path.join(os.path.dirname(tone_file), "tone_forestric.mp3")
        assert os.path.isfile(expected)
