"""Collects per-node outcomes into the final execution report."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from .types import NodeStatus, RunOutcome, RunStatus

FAILURE_STATUSES = frozenset({NodeStatus.ERROR, NodeStatus.TIMED_OUT, NodeStatus.CANCELLED})


@dataclass(frozen=True)
class ExecutionResult:
    """Terminal outcome of one node. Immutable once recorded."""

    node_id: str
    status: NodeStatus
    output: Any = None
    error_detail: dict[str, Any] | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    attempts: int = 0
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == NodeStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "status": self.status.value,
            "output": self.output,
            "errorDetail": self.error_detail,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "attempts": self.attempts,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ExecutionReport:
    """Aggregated results of one run, keyed by node id in graph order."""

    execution_id: str
    status: RunStatus
    outcome: RunOutcome
    results: dict[str, ExecutionResult]
    started_at: datetime
    finished_at: datetime
    cancelled: bool = False
    cancel_reason: str | None = None

    def __len__(self) -> int:
        return len(self.results)

    def get(self, node_id: str) -> ExecutionResult | None:
        return self.results.get(node_id)

    def statuses(self) -> dict[str, NodeStatus]:
        return {node_id: r.status for node_id, r in self.results.items()}

    def with_status(self, status: NodeStatus) -> list[ExecutionResult]:
        return [r for r in self.results.values() if r.status == status]

    @property
    def succeeded(self) -> list[ExecutionResult]:
        return self.with_status(NodeStatus.SUCCESS)

    @property
    def failed(self) -> list[ExecutionResult]:
        return [r for r in self.results.values() if r.status in FAILURE_STATUSES]

    @property
    def duration_ms(self) -> float:
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "executionId": self.execution_id,
            "status": self.status.value,
            "outcome": self.outcome.value,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
            "durationMs": self.duration_ms,
            "cancelled": self.cancelled,
            "cancelReason": self.cancel_reason,
            "results": [r.to_dict() for r in self.results.values()],
        }


class ReportBuilder:
    """Write-once collector of ExecutionResults for a single (sub)run."""

    def __init__(self, execution_id: str, node_order: Iterable[str]) -> None:
        self.execution_id = execution_id
        self.started_at = datetime.now()
        self._order = list(node_order)
        self._results: dict[str, ExecutionResult] = {}

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._results

    def record(self, result: ExecutionResult) -> ExecutionResult:
        if result.node_id in self._results:
            raise RuntimeError(f'Result for node "{result.node_id}" already recorded')
        self._results[result.node_id] = result
        return result

    def get(self, node_id: str) -> ExecutionResult | None:
        return self._results.get(node_id)

    @property
    def recorded(self) -> int:
        return len(self._results)

    def results(self) -> dict[str, ExecutionResult]:
        """Recorded results in graph order."""
        return {nid: self._results[nid] for nid in self._order if nid in self._results}

    def build(self, cancel_reason: str | None = None, cancelled: bool = False) -> ExecutionReport:
        results = self.results()
        failed = any(r.status in FAILURE_STATUSES for r in results.values())
        return ExecutionReport(
            execution_id=self.execution_id,
            status=RunStatus.COMPLETE,
            outcome=RunOutcome.PARTIAL_FAILURE if failed else RunOutcome.ALL_SUCCESS,
            results=results,
            started_at=self.started_at,
            finished_at=datetime.now(),
            cancelled=cancelled,
            cancel_reason=cancel_reason,
        )
