"""Core module for the workflow executor - config, exceptions, and logging."""

from .config import settings, Settings, get_settings
from .exceptions import (
    WorkflowEngineError,
    ValidationError,
    NodeTypeNotFoundError,
    NodeExecutionError,
    NetworkError,
    HttpStatusError,
    MappingError,
    NodeConfigurationError,
    NodeTimeoutError,
    NodeCancelledError,
    LoopIterationError,
)
from .logging import setup_logging

__all__ = [
    # Config
    "settings",
    "Settings",
    "get_settings",
    # Exceptions
    "WorkflowEngineError",
    "ValidationError",
    "NodeTypeNotFoundError",
    "NodeExecutionError",
    "NetworkError",
    "HttpStatusError",
    "MappingError",
    "NodeConfigurationError",
    "NodeTimeoutError",
    "NodeCancelledError",
    "LoopIterationError",
    # Logging
    "setup_logging",
]
