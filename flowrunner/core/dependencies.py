"""FastAPI dependency injection for the executor service."""

from __future__ import annotations

from fastapi import Depends

from .config import Settings, get_settings


def get_node_registry():
    """Get the executor registry shared by the service."""
    from ..engine.node_registry import node_registry

    return node_registry


def get_execution_store():
    """Get the in-memory execution history."""
    from ..storage.execution_store import execution_store

    return execution_store


def get_workflow_runner(
    registry=Depends(get_node_registry),
    settings: Settings = Depends(get_settings),
):
    """Get a workflow runner bound to the shared registry."""
    from ..engine.workflow_runner import WorkflowRunner

    return WorkflowRunner(registry=registry, settings=settings)
