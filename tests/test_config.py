"""Tests for configuration defaults, merging and validation."""

import pytest

from forestriclib.config import (
    STUDIO_PARAMS,
    ConfigError,
    default_config,
    merge_configs,
    validate_config,
    validate_param_values,
)


class TestDefaults:
    def test_defaults_are_valid(self):
        validate_config(default_config())

    def test_default_values(self):
        cfg = default_config()
        assert cfg["mode"] == "standard"
        assert cfg["volume"] == 1.0
        assert cfg["fft_size"] == 512
        assert cfg["waveform_width"] == 1200
        assert cfg["waveform_height"] == 200

    def test_every_param_has_default(self):
        assert set(default_config()) == {p.key for p in STUDIO_PARAMS}


class TestMerge:
    def test_later_wins(self):
        merged = merge_configs({"mode": "standard", "volume": 1.0}, {"volume": 0.5})
        assert merged == {"mode": "standard", "volume": 0.5}


class TestValidation:
    def errors(self, **values):
        return validate_param_values(STUDIO_PARAMS, values)

    def test_missing_keys_ok(self):
        assert self.errors() == []

    def test_unknown_mode(self):
        (err,) = self.errors(mode="turbo")
        assert err.key == "mode"

    @pytest.mark.parametrize("volume", [-0.1, 2.5])
    def test_volume_range(self, volume):
        (err,) = self.errors(volume=volume)
        assert err.key == "volume"

    def test_volume_accepts_int(self):
        assert self.errors(volume=2) == []

    def test_bool_is_not_a_number(self):
        (err,) = self.errors(volume=True)
        assert "boolean" in err.message

    def test_fft_power_of_two(self):
        (err,) = self.errors(fft_size=500)
        assert "power of two" in err.message

    def test_fft_out_of_range_reported_once(self):
        assert len(self.errors(fft_size=16)) == 1

    def test_smoothing_upper_bound_exclusive(self):
        (err,) = self.errors(analyser_smoothing=1.0)
        assert err.key == "analyser_smoothing"

    def test_time_constant_must_be_positive(self):
        (err,) = self.errors(gain_time_constant=0.0)
        assert err.key == "gain_time_constant"

    def test_validate_config_raises_with_all_messages(self):
        cfg = merge_configs(default_config(), {"mode": "x", "volume": 9.0})
        with pytest.raises(ConfigError) as exc:
            validate_config(cfg)
        assert "Render mode" in str(exc.value)
        assert "Master gain" in str(exc.value)
