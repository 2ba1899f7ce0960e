"""Environment switches deciding whether the numba backend may run."""
from __future__ import annotations

import os
from typing import Mapping, Optional

# accepted spellings, first match wins
DISABLE_ENV_VARS = ("SUPERDROPS_NUMBA_DISABLE", "SUPERDROPS_DISABLE_NUMBA")

_ON = frozenset({"1", "true", "yes", "on"})
_OFF = frozenset({"0", "false", "no", "off"})


def parse_flag(value: Optional[str]) -> Optional[bool]:
    """Interpret an environment string as a boolean; ``None`` when unset or unrecognised."""

    if value is None:
        return None
    text = value.strip().lower()
    if text in _ON:
        return True
    if text in _OFF:
        return False
    return None


def numba_disabled_env(env: Optional[Mapping[str, str]] = None) -> bool:
    """Return True when one of :data:`DISABLE_ENV_VARS` switches numba off."""

    source = os.environ if env is None else env
    flags = (parse_flag(source.get(name)) for name in DISABLE_ENV_VARS)
    return next((flag for flag in flags if flag is not None), False)


def numba_status(requested: bool, disabled_env: bool, use_numba: bool, numba_failed: bool) -> dict[str, object]:
    """Summarise backend selection for logs and tests."""

    active = use_numba and not numba_failed
    return {
        "requested": bool(requested),
        "disabled_env": bool(disabled_env),
        "use_numba": bool(use_numba),
        "numba_failed": bool(numba_failed),
        "active": "numba" if active else "serial",
    }


__all__ = ["DISABLE_ENV_VARS", "numba_disabled_env", "numba_status", "parse_flag"]
