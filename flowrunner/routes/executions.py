"""Execution routes."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from ..core.config import Settings, get_settings
from ..core.dependencies import get_execution_store, get_workflow_runner
from ..core.exceptions import ValidationError
from ..engine.graph import build_graph
from ..engine.workflow_runner import WorkflowRunner
from ..schemas.common import SuccessResponse
from ..schemas.execution import ExecutionListItem, ExecutionReportSchema
from ..schemas.workflow import ExecuteRequest
from ..storage.execution_store import ExecutionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/executions", tags=["Executions"])


# Type aliases for dependency injection
RunnerDep = Annotated[WorkflowRunner, Depends(get_workflow_runner)]
StoreDep = Annotated[ExecutionStore, Depends(get_execution_store)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


@router.post("", response_model=ExecutionReportSchema)
async def run_workflow(
    request: ExecuteRequest,
    runner: RunnerDep,
    store: StoreDep,
    settings: SettingsDep,
) -> ExecutionReportSchema:
    """Run a workflow graph and return its execution report."""
    try:
        graph = build_graph(
            [n.to_definition() for n in request.nodes],
            [e.to_edge() for e in request.edges],
        )
        report = await runner.run(
            graph,
            request.options.to_run_options(settings),
            initial_data=request.initial_data,
        )
    except ValidationError as e:
        logger.info("Rejected workflow graph: %s", e.message)
        raise HTTPException(status_code=422, detail={"error": e.message, "details": e.details})

    store.save(report)
    return ExecutionReportSchema.from_report(report)


@router.get("", response_model=list[ExecutionListItem])
async def list_executions(store: StoreDep) -> list[ExecutionListItem]:
    """List execution history."""
    return [ExecutionListItem.from_report(r) for r in store.list()]


@router.get("/{execution_id}", response_model=ExecutionReportSchema)
async def get_execution(execution_id: str, store: StoreDep) -> ExecutionReportSchema:
    """Get execution details."""
    report = store.get(execution_id)
    if not report:
        raise HTTPException(status_code=404, detail="Execution not found")
    return ExecutionReportSchema.from_report(report)


@router.delete("/{execution_id}", response_model=SuccessResponse)
async def delete_execution(execution_id: str, store: StoreDep) -> SuccessResponse:
    """Delete an execution record."""
    if not store.delete(execution_id):
        raise HTTPException(status_code=404, detail="Execution not found")
    return SuccessResponse(message="Execution deleted")


@router.delete("", response_model=SuccessResponse)
async def clear_executions(store: StoreDep) -> SuccessResponse:
    """Clear all execution records."""
    count = len(store)
    store.clear()
    return SuccessResponse(message=f"Cleared {count} execution records")
