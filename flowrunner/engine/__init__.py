"""Core workflow engine components."""

from .types import (
    NodeType,
    NodeStatus,
    RunStatus,
    RunOutcome,
    NodeDefinition,
    Edge,
    NodeExecutionResult,
    RunOptions,
    CancellationToken,
    ExecutionContext,
    ExecutionEvent,
    ExecutionEventType,
)
from .graph import Graph, build_graph, start_nodes, children_of, parents_of, descendants_of
from .reporter import ExecutionResult, ExecutionReport, ReportBuilder
from .expressions import ExpressionEngine, expression_engine
from .node_registry import ExecutorRegistry, node_registry, register_builtin_nodes
from .workflow_runner import WorkflowRunner

__all__ = [
    "NodeType",
    "NodeStatus",
    "RunStatus",
    "RunOutcome",
    "NodeDefinition",
    "Edge",
    "NodeExecutionResult",
    "RunOptions",
    "CancellationToken",
    "ExecutionContext",
    "ExecutionEvent",
    "ExecutionEventType",
    "Graph",
    "build_graph",
    "start_nodes",
    "children_of",
    "parents_of",
    "descendants_of",
    "ExecutionResult",
    "ExecutionReport",
    "ReportBuilder",
    "ExpressionEngine",
    "expression_engine",
    "ExecutorRegistry",
    "node_registry",
    "register_builtin_nodes",
    "WorkflowRunner",
]
