"""Flowrunner - asynchronous workflow graph executor."""

from .engine import (
    CancellationToken,
    Edge,
    ExecutionReport,
    ExecutionResult,
    NodeDefinition,
    NodeStatus,
    RunOptions,
    WorkflowRunner,
    build_graph,
)

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "Edge",
    "ExecutionReport",
    "ExecutionResult",
    "NodeDefinition",
    "NodeStatus",
    "RunOptions",
    "WorkflowRunner",
    "build_graph",
]
