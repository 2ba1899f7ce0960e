"""Runtime helpers shared by the engine and its backends."""

from .helpers import format_exception_short, log_stage
from .numba_config import numba_disabled_env, numba_status

__all__ = [
    "format_exception_short",
    "log_stage",
    "numba_disabled_env",
    "numba_status",
]
