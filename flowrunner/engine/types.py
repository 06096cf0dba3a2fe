"""Core type definitions for the workflow executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.config import Settings
    from .reporter import ExecutionResult


class NodeType(str, Enum):
    """Built-in node type tags."""

    TRIGGER = "trigger"
    API = "api"
    TRANSFORMER = "transformer"
    FILTER = "filter"
    DATA_MAPPER = "dataMapper"
    LOOP = "loop"


class NodeStatus(str, Enum):
    """Terminal status of a node within one run."""

    SUCCESS = "success"
    ERROR = "error"
    SHORT_CIRCUITED = "short_circuited"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class RunStatus(str, Enum):
    """Lifecycle status of a run. Failures live in the report, never here."""

    COMPLETE = "complete"


class RunOutcome(str, Enum):
    """Aggregate outcome of a run."""

    ALL_SUCCESS = "all_success"
    PARTIAL_FAILURE = "partial_failure"


# --- Graph Schema Types ---


@dataclass(frozen=True)
class NodeDefinition:
    """Definition of a node in a workflow graph."""

    id: str
    type: str
    config: dict[str, Any] = field(default_factory=dict)
    label: str | None = None
    retry_on_fail: int = 0
    retry_delay: int = 1000
    continue_on_fail: bool = False
    timeout_ms: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeDefinition:
        """Build from a plain `{id, type, config}` record (camelCase extras allowed)."""
        node_type = data.get("type")
        if isinstance(node_type, Enum):
            node_type = node_type.value
        timeout_ms = data.get("timeoutMs", data.get("timeout_ms"))
        return cls(
            id=data.get("id", ""),
            type=node_type or "",
            config=dict(data.get("config") or {}),
            label=data.get("label"),
            retry_on_fail=int(data.get("retryOnFail", data.get("retry_on_fail", 0)) or 0),
            retry_delay=int(data.get("retryDelay", data.get("retry_delay", 1000)) or 0),
            continue_on_fail=bool(
                data.get("continueOnFail", data.get("continue_on_fail", False))
            ),
            timeout_ms=int(timeout_ms) if timeout_ms not in (None, "") else None,
        )


@dataclass(frozen=True)
class Edge:
    """Directed edge: target runs after source completes."""

    source: str
    target: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Edge:
        return cls(source=data.get("source", ""), target=data.get("target", ""))


# --- Execution Types ---


@dataclass
class NodeExecutionResult:
    """
    What an executor hands back to the runner.

    `short_circuited` marks an intended stop (a filter that did not match),
    not a fault.
    """

    output: Any = None
    short_circuited: bool = False


@dataclass(frozen=True)
class RunOptions:
    """Per-run execution options."""

    max_parallelism: int | None = None
    node_timeout_ms: int | None = None
    fail_fast_on_loop_iteration: bool = False
    skip_on_short_circuit: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> RunOptions:
        return cls(
            max_parallelism=settings.max_parallelism,
            node_timeout_ms=settings.node_timeout_ms,
            fail_fast_on_loop_iteration=settings.fail_fast_on_loop_iteration,
            skip_on_short_circuit=settings.skip_on_short_circuit,
        )


class CancellationToken:
    """Run-scoped cancellation flag, shared with nested loop bodies."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason


BodyRunner = Callable[[dict[str, Any]], Awaitable[dict[str, "ExecutionResult"]]]


@dataclass
class ExecutionContext:
    """Context handed to class-based executors for one node invocation."""

    execution_id: str
    node: NodeDefinition
    options: RunOptions
    cancel_token: CancellationToken
    depth: int = 0

    # Set only for nodes that own a loop body
    body_runner: BodyRunner | None = None
    body_node_ids: tuple[str, ...] = ()

    # Per-iteration body results, filled in by the loop executor
    body_results: list[dict[str, ExecutionResult]] = field(default_factory=list)

    async def run_body(self, payload: dict[str, Any]) -> dict[str, ExecutionResult]:
        """Run this node's downstream body once with `payload` as entry inbound data."""
        if self.body_runner is None:
            return {}
        return await self.body_runner(payload)


class ExecutionEventType(str, Enum):
    """Types of execution events for progress callbacks."""

    EXECUTION_START = "execution:start"
    NODE_START = "node:start"
    NODE_COMPLETE = "node:complete"
    NODE_ERROR = "node:error"
    NODE_SKIPPED = "node:skipped"
    EXECUTION_COMPLETE = "execution:complete"


@dataclass
class ExecutionEvent:
    """Real-time execution event."""

    type: ExecutionEventType
    execution_id: str
    timestamp: datetime
    node_id: str | None = None
    node_type: str | None = None
    status: NodeStatus | None = None
    data: Any = None
    error: str | None = None
    progress: dict[str, int] | None = None


# Callback type for receiving execution events
ExecutionEventCallback = Callable[[ExecutionEvent], None]
