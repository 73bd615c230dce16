"""Diagnostics and debugging utilities for boxlbfgs."""

from .core import FIELDS, Diagnostics
from .debug_mode import (
    debug_context,
    is_debug_enabled,
    set_debug_enabled,
)

__all__ = [
    "Diagnostics",
    "FIELDS",
    "debug_context",
    "is_debug_enabled",
    "set_debug_enabled",
]
