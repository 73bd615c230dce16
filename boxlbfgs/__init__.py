"""boxlbfgs - a reverse-communication driver for bound-constrained L-BFGS."""

__version__ = "0.1.0"

from .bounds import EMPTY, encode_bounds
from .core import BoundType, OptimizeResult, Status, Task
from .diagnostics import (
    Diagnostics,
    debug_context,
    is_debug_enabled,
    set_debug_enabled,
)
from .driver import LBFGSBConfig, minimize, minimize_result, print_level_to_iprint
from .errors import AbnormalTermination, InvalidArgument, LBFGSBError, ResizeError
from .kernel import setulb
from .logging import configure_logging, get_logger, set_log_level
from .workspace import (
    Workspace,
    create_workspace,
    supported_dimension,
    validate_workspace,
    workspace_sizes,
)

__all__ = [
    "AbnormalTermination",
    "BoundType",
    "Diagnostics",
    "EMPTY",
    "InvalidArgument",
    "LBFGSBConfig",
    "LBFGSBError",
    "OptimizeResult",
    "ResizeError",
    "Status",
    "Task",
    "Workspace",
    "configure_logging",
    "create_workspace",
    "debug_context",
    "encode_bounds",
    "get_logger",
    "is_debug_enabled",
    "minimize",
    "minimize_result",
    "print_level_to_iprint",
    "set_debug_enabled",
    "set_log_level",
    "setulb",
    "supported_dimension",
    "validate_workspace",
    "workspace_sizes",
]
