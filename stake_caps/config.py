"""
YAML configuration for simulation runs.

Layout (every section and key optional; missing values take defaults)::

    parameters:
      ceiling: "1,800,000,000,000"   # or `m`, the name used by the set-parameters instruction
      floor: 1_000_000
      curve_shape_bps: 10000         # or `z`: curve_shape_bps = z * 10_000 // 10
      concentration_threshold: 18_000_000_000_000
    generator:
      publisher_range: [1, 64]
      stake_range: [0, "50,000,000,000,000"]
      max_clusters: 4
      cluster_spread_bps: 1000
      outlier_bps: 2500
      outlier_multiplier: 20
      noise_frequency: 0.05
      rng_algorithm: mt19937
    run:
      trials: 1000
      base_seed: 0
      workers: 4
      batch_size: 64
      mode_mix: {uniform: 4, clustered: 3, noise_field: 2, boundary: 1}

The loader only converts shapes. Domain checks stay with the consumers
(`validate_parameters`, `validate_run_config`), which run again at point of use.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Type, Union

import yaml

from .core.math import BPS_SCALE
from .core.params import PARAM_FIELDS, CapParameters, params_from_dict
from .errors import InvalidGeneratorConfig, InvalidParameters, StakeCapsError
from .sim.generator import GeneratorConfig
from .sim.runner import DEFAULT_MODE_MIX, RunConfig
from .sim.types import GeneratorMode
from .state.amounts import U64_MAX


logger = logging.getLogger(__name__)

SECTIONS = ("parameters", "generator", "run")

_GENERATOR_INT_KEYS = ("max_clusters", "cluster_spread_bps", "outlier_bps", "outlier_multiplier")
_RUN_INT_KEYS = ("trials", "base_seed", "workers", "batch_size")


def parse_amount(
    value: Any,
    *,
    name: str = "amount",
    error: Type[StakeCapsError] = InvalidParameters,
) -> int:
    """
    Parse a u64 amount from an int or a "nice" string (``1_000``, ``1,000``).

    Raises:
        `error` (default InvalidParameters): Not an integer, negative, or above u64
    """
    if isinstance(value, bool):
        raise error(f"{name} must be an integer amount: {value!r}")
    if isinstance(value, int):
        out = value
    elif isinstance(value, str):
        text = value.strip().replace("_", "").replace(",", "")
        if not text or not text.isdigit() or not text.isascii():
            raise error(f"{name} is not a valid amount: {value!r}")
        out = int(text)
    else:
        raise error(f"{name} must be an integer amount: {value!r}")
    if out < 0 or out > U64_MAX:
        raise error(f"{name} out of u64 range: {value!r}")
    return out


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    raw = data.get(key)
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise TypeError(f"config section {key!r} must be a mapping")
    return raw


def _reject_unknown(section: Mapping[str, Any], allowed, *, label: str, error: Type[StakeCapsError]) -> None:
    unknown = sorted(str(k) for k in set(section) - set(allowed))
    if unknown:
        raise error(f"unknown {label} key(s): {', '.join(unknown)}")


def parameters_from_config(section: Mapping[str, Any]) -> CapParameters:
    aliases = {"m", "z"}
    _reject_unknown(section, set(PARAM_FIELDS) | aliases, label="parameters", error=InvalidParameters)

    raw: Dict[str, Any] = dict(section)
    if "m" in raw:
        if "ceiling" in raw:
            raise InvalidParameters("give either `m` or `ceiling`, not both")
        raw["ceiling"] = raw.pop("m")
    if "z" in raw:
        if "curve_shape_bps" in raw:
            raise InvalidParameters("give either `z` or `curve_shape_bps`, not both")
        raw["curve_shape_bps"] = parse_amount(raw.pop("z"), name="z") * BPS_SCALE // 10

    return params_from_dict({k: parse_amount(v, name=k) for k, v in raw.items()})


def _pair(value: Any, *, name: str) -> tuple[int, int]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise InvalidGeneratorConfig(f"{name} must be a [min, max] pair: {value!r}")
    lo, hi = value
    return (
        parse_amount(lo, name=f"{name}[0]", error=InvalidGeneratorConfig),
        parse_amount(hi, name=f"{name}[1]", error=InvalidGeneratorConfig),
    )


def generator_from_config(section: Mapping[str, Any], params: CapParameters) -> GeneratorConfig:
    allowed = ("publisher_range", "stake_range", "noise_frequency", "rng_algorithm") + _GENERATOR_INT_KEYS
    _reject_unknown(section, allowed, label="generator", error=InvalidGeneratorConfig)

    kwargs: Dict[str, Any] = {"params": params}
    for key in ("publisher_range", "stake_range"):
        if key in section:
            kwargs[key] = _pair(section[key], name=key)
    for key in _GENERATOR_INT_KEYS:
        if key in section:
            kwargs[key] = parse_amount(section[key], name=key, error=InvalidGeneratorConfig)
    if "noise_frequency" in section:
        freq = section["noise_frequency"]
        if isinstance(freq, bool) or not isinstance(freq, (int, float)):
            raise InvalidGeneratorConfig(f"noise_frequency must be a number: {freq!r}")
        kwargs["noise_frequency"] = float(freq)
    if "rng_algorithm" in section:
        kwargs["rng_algorithm"] = str(section["rng_algorithm"])
    return GeneratorConfig(**kwargs)


def mode_mix_from_config(value: Any) -> tuple[tuple[GeneratorMode, int], ...]:
    if not isinstance(value, Mapping):
        raise InvalidGeneratorConfig("run.mode_mix must be a mapping of mode -> weight")
    out = []
    for mode_name, weight in value.items():
        try:
            mode = GeneratorMode(mode_name)
        except ValueError as exc:
            raise InvalidGeneratorConfig(f"unknown generator mode: {mode_name!r}") from exc
        out.append((mode, parse_amount(weight, name=f"mode_mix.{mode_name}", error=InvalidGeneratorConfig)))
    return tuple(out)


def config_from_dict(data: Mapping[str, Any]) -> RunConfig:
    """
    Build a `RunConfig` from an already-parsed mapping.

    Raises:
        TypeError: Top level or a section is not a mapping
        InvalidParameters: Bad or unknown `parameters` entry
        InvalidGeneratorConfig: Bad or unknown `generator` / `run` entry
    """
    if not isinstance(data, Mapping):
        raise TypeError("config must be a mapping")
    unknown = sorted(str(k) for k in set(data) - set(SECTIONS))
    if unknown:
        raise InvalidGeneratorConfig(f"unknown config section(s): {', '.join(unknown)}")

    params = parameters_from_config(_section(data, "parameters"))
    generator = generator_from_config(_section(data, "generator"), params)

    run = _section(data, "run")
    _reject_unknown(run, _RUN_INT_KEYS + ("mode_mix",), label="run", error=InvalidGeneratorConfig)
    kwargs: Dict[str, Any] = {"generator": generator, "mode_mix": DEFAULT_MODE_MIX}
    for key in _RUN_INT_KEYS:
        if key in run:
            kwargs[key] = parse_amount(run[key], name=f"run.{key}", error=InvalidGeneratorConfig)
    if "mode_mix" in run:
        kwargs["mode_mix"] = mode_mix_from_config(run["mode_mix"])
    return RunConfig(**kwargs)


def load_config(path: Union[str, Path]) -> RunConfig:
    """Read a YAML config file. An empty file yields the defaults."""
    path = Path(path)
    obj = yaml.safe_load(path.read_text(encoding="utf-8"))
    if obj is None:
        obj = {}
    if not isinstance(obj, Mapping):
        raise TypeError("config YAML must be a mapping")
    config = config_from_dict(obj)
    logger.info("loaded config from %s (%d trials, %d workers)", path, config.trials, config.workers)
    return config
