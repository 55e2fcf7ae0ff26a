"""Logging utility for briefops.

Uses structlog for structured logging with optional JSON output.
Noisy components (registry scans, adapter requests) are grouped into
categories that can be switched on individually.

Configuration:
    Environment variables:
    - BRIEFOPS_LOG_LEVEL: Global log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - BRIEFOPS_JSON_LOGS: Enable JSON output ("1", "true", "yes")
    - BRIEFOPS_LOG_REGISTRY: Enable connector registry logs ("1", "true", "yes")
    - BRIEFOPS_LOG_ADAPTERS: Enable adapter request logs ("1", "true", "yes")

    Or use LogConfig programmatically:
    >>> from briefops.utils.logger import configure_logging, LogConfig
    >>> configure_logging(config=LogConfig(level="DEBUG", enable_adapter_logs=True))
"""

import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog


class LogCategory(Enum):
    """Categories of logs that can be enabled/disabled."""

    REGISTRY = "registry"  # Connector file discovery and loading
    CREDENTIALS = "credentials"  # Credential resolution and storage
    ADAPTERS = "adapters"  # MCP and HTTP adapter calls
    AGGREGATOR = "aggregator"  # Fan-out across sources
    LLM = "llm"  # Briefing generation
    GENERAL = "general"


@dataclass
class LogConfig:
    """Configuration for briefops logging.

    Example:
        >>> config = LogConfig(
        ...     level="INFO",
        ...     json_logs=True,
        ...     enable_registry_logs=False,
        ...     enable_adapter_logs=True,
        ... )
    """

    level: str = "INFO"
    json_logs: bool = False

    enable_registry_logs: bool = False
    enable_credential_logs: bool = True
    enable_adapter_logs: bool = False
    enable_aggregator_logs: bool = True
    enable_llm_logs: bool = True

    errors_always_logged: bool = True
    warnings_always_logged: bool = True

    def is_category_enabled(self, category: LogCategory) -> bool:
        """Check if a log category is enabled."""
        category_map = {
            LogCategory.REGISTRY: self.enable_registry_logs,
            LogCategory.CREDENTIALS: self.enable_credential_logs,
            LogCategory.ADAPTERS: self.enable_adapter_logs,
            LogCategory.AGGREGATOR: self.enable_aggregator_logs,
            LogCategory.LLM: self.enable_llm_logs,
            LogCategory.GENERAL: True,
        }
        return category_map.get(category, True)

    @classmethod
    def from_env(cls) -> "LogConfig":
        """Create LogConfig from environment variables."""

        def parse_bool(val: str | None) -> bool:
            return val is not None and val.lower() in ("1", "true", "yes")

        return cls(
            level=os.getenv("BRIEFOPS_LOG_LEVEL", "INFO"),
            json_logs=parse_bool(os.getenv("BRIEFOPS_JSON_LOGS")),
            enable_registry_logs=parse_bool(os.getenv("BRIEFOPS_LOG_REGISTRY")),
            enable_credential_logs=parse_bool(os.getenv("BRIEFOPS_LOG_CREDENTIALS", "1")),
            enable_adapter_logs=parse_bool(os.getenv("BRIEFOPS_LOG_ADAPTERS")),
            enable_aggregator_logs=parse_bool(os.getenv("BRIEFOPS_LOG_AGGREGATOR", "1")),
            enable_llm_logs=parse_bool(os.getenv("BRIEFOPS_LOG_LLM", "1")),
        )


_log_config: LogConfig = LogConfig.from_env()


def _make_category_filter(config: LogConfig):
    """Create a structlog processor that drops events from disabled categories.

    Errors and warnings pass regardless of category when configured to.
    """

    def category_filter(logger, method_name, event_dict):
        log_level = event_dict.get("level", "info").lower()

        if config.errors_always_logged and log_level in ("error", "critical", "exception"):
            return event_dict

        if config.warnings_always_logged and log_level == "warning":
            return event_dict

        category_str = event_dict.get("category", "general")
        try:
            category = LogCategory(category_str)
        except ValueError:
            category = LogCategory.GENERAL

        if not config.is_category_enabled(category):
            raise structlog.DropEvent

        return event_dict

    return category_filter


def _configure_structlog(config: LogConfig) -> None:
    """Configure structlog with appropriate processors."""
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _make_category_filter(config),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.json_logs:
        processors = [
            *shared_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, config.level.upper(), logging.INFO)
        ),
        context_class=dict,
        # Logs go to stderr so CLI output on stdout stays machine-readable
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


_configure_structlog(_log_config)


def get_logger(name: str, category: LogCategory | None = None) -> Any:
    """Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__).
        category: Optional log category for filtering.

    Returns:
        Configured structlog logger instance.

    Example:
        >>> logger = get_logger(__name__, category=LogCategory.ADAPTERS)
        >>> logger.info("api_request", method="GET", url="https://api.example.test/tickets")
    """
    base_logger = structlog.get_logger(name)

    if category is not None:
        return base_logger.bind(category=category.value)

    return base_logger


def get_config() -> LogConfig:
    """Get the current logging configuration."""
    return _log_config


def configure_logging(
    level: str = "INFO",
    json_logs: bool | None = None,
    config: LogConfig | None = None,
) -> None:
    """Configure global logging settings.

    Args:
        level: Logging level.
        json_logs: If True, output JSON logs. If None, keeps the current setting.
        config: Optional LogConfig instance for full control.
    """
    global _log_config

    if config is not None:
        _log_config = config
    else:
        _log_config = LogConfig(
            level=level,
            json_logs=json_logs if json_logs is not None else _log_config.json_logs,
            enable_registry_logs=_log_config.enable_registry_logs,
            enable_credential_logs=_log_config.enable_credential_logs,
            enable_adapter_logs=_log_config.enable_adapter_logs,
            enable_aggregator_logs=_log_config.enable_aggregator_logs,
            enable_llm_logs=_log_config.enable_llm_logs,
        )

    _configure_structlog(_log_config)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables to all subsequent log messages.

    Example:
        >>> bind_context(operator_id="daily-brief")
        >>> logger.info("gathering")  # includes operator_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
