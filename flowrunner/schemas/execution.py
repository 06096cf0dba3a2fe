"""Execution-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from ..engine.reporter import ExecutionReport


class ExecutionResultSchema(BaseModel):
    """Terminal outcome of one node."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    node_id: str
    status: str
    output: Any = None
    error_detail: dict[str, Any] | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    attempts: int = 0
    reason: str | None = None


class ExecutionReportSchema(BaseModel):
    """Response schema for a finished run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    execution_id: str
    status: str
    outcome: str
    started_at: datetime
    finished_at: datetime
    duration_ms: float
    cancelled: bool = False
    cancel_reason: str | None = None
    results: list[ExecutionResultSchema]

    @classmethod
    def from_report(cls, report: ExecutionReport) -> ExecutionReportSchema:
        return cls.model_validate(report.to_dict())


class ExecutionListItem(BaseModel):
    """Schema for an execution in list responses."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    execution_id: str
    status: str
    outcome: str
    started_at: datetime
    finished_at: datetime
    node_count: int
    failed_count: int

    @classmethod
    def from_report(cls, report: ExecutionReport) -> ExecutionListItem:
        return cls(
            execution_id=report.execution_id,
            status=report.status.value,
            outcome=report.outcome.value,
            started_at=report.started_at,
            finished_at=report.finished_at,
            node_count=len(report),
            failed_count=len(report.failed),
        )
