"""Logging helpers shared by the engine and its backends."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional


def format_exception_short(exc: BaseException, limit: int = 160) -> str:
    """Return ``"<Type>: <message>"`` cut to ``limit`` characters."""

    text = f"{type(exc).__name__}: {exc}"
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return text


def log_stage(logger_obj: Optional[logging.Logger], label: str, *, extra: Optional[Mapping[str, Any]] = None) -> None:
    """Emit one ``stage=<label> key=value ...`` record at INFO level."""

    if logger_obj is None:
        return
    fields = " ".join(f"{key}={value}" for key, value in sorted((extra or {}).items()))
    if fields:
        logger_obj.info("stage=%s %s", label, fields)
    else:
        logger_obj.info("stage=%s", label)


__all__ = ["format_exception_short", "log_stage"]
