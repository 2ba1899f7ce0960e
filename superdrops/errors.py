"""Custom exceptions for the :mod:`superdrops` package."""
from __future__ import annotations


class SuperdropsError(Exception):
    """Base exception for superdroplet engine errors."""


class ConfigurationError(SuperdropsError, ValueError):
    """Invalid options, or a per-step flag requesting a process disabled at init."""


class SequencingError(SuperdropsError, RuntimeError):
    """``init``/``step_sync``/``step_async`` called out of the required order."""


class PreconditionError(SuperdropsError, AssertionError):
    """An operation ran on data that violates its input contract."""


class CapacityError(SuperdropsError, RuntimeError):
    """Particle arrays or boundary buffers would overflow their reservation."""


class PhysicsError(SuperdropsError, ValueError):
    """Non-physical input values passed to a physics routine."""


__all__ = [
    "SuperdropsError",
    "ConfigurationError",
    "SequencingError",
    "PreconditionError",
    "CapacityError",
    "PhysicsError",
]
