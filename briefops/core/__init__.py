"""Core configuration: application settings and operator definitions."""

from .config_loader import ConfigLoader
from .operator_loader import (
    OperatorConfig,
    OperatorConfigError,
    Task,
    find_operator,
    load_operator,
    parse_operator,
)


__all__ = [
    "ConfigLoader",
    "OperatorConfig",
    "OperatorConfigError",
    "Task",
    "find_operator",
    "load_operator",
    "parse_operator",
]
