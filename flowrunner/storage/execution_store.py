"""In-memory execution history."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.config import settings

if TYPE_CHECKING:
    from ..engine.reporter import ExecutionReport


class ExecutionStore:
    """Bounded in-memory store of finished execution reports."""

    def __init__(self, max_records: int = 100) -> None:
        self._executions: dict[str, ExecutionReport] = {}
        self._max_records = max_records

    def __len__(self) -> int:
        return len(self._executions)

    def save(self, report: ExecutionReport) -> ExecutionReport:
        """Store a report, evicting the oldest ones when over capacity."""
        self._executions[report.execution_id] = report
        self._cleanup()
        return report

    def get(self, execution_id: str) -> ExecutionReport | None:
        """Get an execution report by ID."""
        return self._executions.get(execution_id)

    def list(self) -> list[ExecutionReport]:
        """List execution reports, newest first."""
        reports = list(self._executions.values())
        reports.sort(key=lambda r: r.started_at, reverse=True)
        return reports

    def delete(self, execution_id: str) -> bool:
        """Delete an execution report."""
        if execution_id in self._executions:
            del self._executions[execution_id]
            return True
        return False

    def clear(self) -> None:
        """Clear all execution reports."""
        self._executions.clear()

    def _cleanup(self) -> None:
        """Remove old records if over max."""
        if len(self._executions) > self._max_records:
            sorted_reports = sorted(
                self._executions.items(),
                key=lambda x: x[1].started_at,
            )
            to_delete = sorted_reports[: len(sorted_reports) - self._max_records]
            for exec_id, _ in to_delete:
                del self._executions[exec_id]


# Singleton instance
execution_store = ExecutionStore(max_records=settings.max_execution_records)
