"""Helper utilities for loading and normalising engine configuration."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping

from pydantic import ValidationError

from .errors import ConfigurationError
from .schema import InitOptions, StepOptions

logger = logging.getLogger(__name__)


def _strip_metadata(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop keys starting with an underscore (scenario annotations)."""

    return {str(key): value for key, value in data.items() if not str(key).startswith("_")}


def _read_yaml(path: Path) -> Dict[str, Any]:
    from ruamel.yaml import YAML

    yaml = YAML(typ="safe")
    with open(path) as f:
        data = yaml.load(f)
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return dict(data)


def load_init_options(path: str | Path) -> InitOptions:
    """Read a YAML file and return validated :class:`InitOptions`.

    The file may either hold the init options at the top level or under an
    ``init`` key (with per-step defaults under ``step``).
    """

    path = Path(path)
    data = _read_yaml(path)
    section = data.get("init", data)
    try:
        opts = InitOptions(**_strip_metadata(section))
    except ValidationError as exc:
        raise ConfigurationError(f"{path}: {exc}") from exc
    logger.info("Loaded init options from %s (grid %dx%dx%d)", path, opts.nx, opts.ny, opts.nz)
    return opts


def load_step_options(path: str | Path) -> StepOptions:
    """Read the ``step`` section of a YAML file; missing section gives defaults."""

    path = Path(path)
    data = _read_yaml(path)
    section = data.get("step") or {}
    try:
        return StepOptions(**_strip_metadata(section))
    except ValidationError as exc:
        raise ConfigurationError(f"{path}: {exc}") from exc


def step_options_for(opts_init: InitOptions, **overrides: Any) -> StepOptions:
    """Return step options enabling exactly the processes switched on at init."""

    values: Dict[str, Any] = {
        "cond": opts_init.cond_switch,
        "adve": opts_init.adve_switch,
        "sedi": opts_init.sedi_switch,
        "coal": opts_init.coal_switch,
        "chem_dsl": opts_init.chem_switch,
        "chem_dsc": opts_init.chem_switch,
        "chem_rct": opts_init.chem_switch,
        "src": opts_init.src_switch,
        "RH_max": opts_init.RH_max,
    }
    values.update(overrides)
    return StepOptions(**values)


__all__ = ["load_init_options", "load_step_options", "step_options_for"]
