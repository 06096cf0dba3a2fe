"""Pydantic schemas for API request/response validation."""

from .workflow import (
    NodeSchema,
    EdgeSchema,
    RunOptionsSchema,
    ExecuteRequest,
)
from .execution import (
    ExecutionResultSchema,
    ExecutionReportSchema,
    ExecutionListItem,
)
from .node import NodeTypeInfo
from .common import (
    SuccessResponse,
    HealthResponse,
    RootResponse,
)

__all__ = [
    # Workflow schemas
    "NodeSchema",
    "EdgeSchema",
    "RunOptionsSchema",
    "ExecuteRequest",
    # Execution schemas
    "ExecutionResultSchema",
    "ExecutionReportSchema",
    "ExecutionListItem",
    # Node schemas
    "NodeTypeInfo",
    # Common schemas
    "SuccessResponse",
    "HealthResponse",
    "RootResponse",
]
