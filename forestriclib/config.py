from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .models import ForestricError

MIN_GAP = 0.1                 # seconds between crop start and end
MP3_BITRATE_KBPS = 128
MP3_BLOCK_SIZE = 1152         # samples per channel per encoder call
OUTPUT_SUFFIX = "_forestric"


class ConfigError(ForestricError):
    """Raised when configuration validation fails."""
    pass


@dataclass
class ConfigFieldError:
    """A single validation error for one configuration field.

    Attributes:
        key:     The config key that failed validation.
        value:   The offending value.
        message: Human-readable explanation of what is wrong.
    """
    key: str
    value: Any
    message: str


@dataclass(frozen=True)
class ParamSpec:
    """Declarative specification for a single configuration parameter."""
    key: str
    type: type | tuple              # expected Python type(s)
    default: Any
    label: str                       # short UI label
    description: str = ""            # longer tooltip / help text
    min: float | int | None = None   # inclusive lower bound (unless min_exclusive)
    max: float | int | None = None   # inclusive upper bound (unless max_exclusive)
    min_exclusive: bool = False
    max_exclusive: bool = False
    choices: list | None = None      # allowed string values


STUDIO_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="mode", type=str, default="standard",
        choices=["standard", "smooth"],
        label="Render mode",
        description=(
            "Playback-rate preset. 'standard' plays 2.5x faster "
            "(about +15.9 semitones), 'smooth' plays 2x faster (+12 semitones)."
        ),
    ),
    ParamSpec(
        key="volume", type=(int, float), default=1.0, min=0.0, max=2.0,
        label="Master gain",
        description="Linear gain applied to preview and export.",
    ),
    ParamSpec(
        key="waveform_width", type=int, default=1200, min=1,
        label="Waveform width (px)",
    ),
    ParamSpec(
        key="waveform_height", type=int, default=200, min=2,
        label="Waveform height (px)",
    ),
    ParamSpec(
        key="fft_size", type=int, default=512, min=32, max=32768,
        label="Spectrum FFT size",
        description="Analyser window length; must be a power of two.",
    ),
    ParamSpec(
        key="gain_time_constant", type=(int, float), default=0.01,
        min=0.0, min_exclusive=True,
        label="Gain smoothing (s)",
        description=(
            "Time constant of the exponential approach used when the volume "
            "changes during preview."
        ),
    ),
    ParamSpec(
        key="analyser_smoothing", type=(int, float), default=0.8,
        min=0.0, max=1.0, max_exclusive=True,
        label="Spectrum smoothing",
        description="Averaging constant between successive analyser frames.",
    ),
]


def default_config() -> dict[str, Any]:
    """Returns the built-in default configuration."""
    return {p.key: p.default for p in STUDIO_PARAMS}


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge multiple config dicts left-to-right.  Later values win."""
    result: dict[str, Any] = {}
    for cfg in configs:
        result.update(cfg)
    return result


def _range_problem(spec: ParamSpec, value: float) -> str | None:
    """Return the bound *value* violates, phrased for the user, or None."""
    lo, hi = spec.min, spec.max
    if lo is not None:
        if spec.min_exclusive and value <= lo:
            return f"greater than {lo}"
        if not spec.min_exclusive and value < lo:
            return f"at least {lo}"
    if hi is not None:
        if spec.max_exclusive and value >= hi:
            return f"less than {hi}"
        if not spec.max_exclusive and value > hi:
            return f"at most {hi}"
    return None


def validate_param_values(
    params: list[ParamSpec],
    values: dict[str, Any],
) -> list[ConfigFieldError]:
    """Check *values* against *params*; returns one error per bad field.

    Keys absent from *values* are skipped, they fall back to defaults.
    """
    errors: list[ConfigFieldError] = []

    for spec in params:
        if spec.key not in values:
            continue
        value = values[spec.key]

        if isinstance(value, bool) and spec.type is not bool:
            problem = f"must be {_type_label(spec.type)}, got boolean"
        elif not isinstance(value, spec.type):
            problem = (f"must be {_type_label(spec.type)}, "
                       f"got {type(value).__name__}")
        elif spec.choices is not None and value not in spec.choices:
            problem = "must be one of " + ", ".join(repr(c) for c in spec.choices)
        elif isinstance(value, (int, float)) and _range_problem(spec, value):
            problem = f"must be {_range_problem(spec, value)}"
        elif spec.key == "fft_size" and value & (value - 1):
            problem = "must be a power of two"
        else:
            continue
        errors.append(ConfigFieldError(spec.key, value, f"{spec.label} {problem}."))

    return errors


def validate_config(config: dict[str, Any]) -> None:
    """Validate a config dict.

    Raises :class:`ConfigError` listing every invalid field.
    """
    errors = validate_param_values(STUDIO_PARAMS, config)
    if errors:
        lines = [e.message for e in errors]
        raise ConfigError(
            "Configuration has invalid values:\n  • " + "\n  • ".join(lines)
        )


def _type_label(t) -> str:
    """Human-readable label for an expected type or tuple of types."""
    if isinstance(t, tuple):
        return " or ".join(x.__name__ for x in t)
    return t.__name__
