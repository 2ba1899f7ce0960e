"""Lagrangian superdroplet microphysics coupled to an Eulerian host grid."""
from . import constants, grid
from .arrinfo import FieldView
from .engine import Engine
from .errors import (
    CapacityError,
    ConfigurationError,
    PhysicsError,
    PreconditionError,
    SequencingError,
    SuperdropsError,
)
from .multi import ShardedEngine, make_engine
from .schema import InitOptions, StepOptions

__version__ = "0.1.0"

__all__ = [
    "CapacityError",
    "ConfigurationError",
    "Engine",
    "FieldView",
    "InitOptions",
    "PhysicsError",
    "PreconditionError",
    "SequencingError",
    "ShardedEngine",
    "StepOptions",
    "SuperdropsError",
    "constants",
    "grid",
    "make_engine",
]
