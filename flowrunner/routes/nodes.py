"""Node routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from ..core.dependencies import get_node_registry
from ..engine.node_registry import ExecutorRegistry
from ..schemas.node import NodeTypeInfo

router = APIRouter(prefix="/nodes", tags=["Nodes"])

RegistryDep = Annotated[ExecutorRegistry, Depends(get_node_registry)]


@router.get("", response_model=list[NodeTypeInfo])
async def list_nodes(registry: RegistryDep) -> list[NodeTypeInfo]:
    """List all registered node types."""
    return [NodeTypeInfo(**info) for info in registry.describe()]
