"""Workflow graph request schemas."""

from __future__ import annotations

import dataclasses
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.config import Settings
from ..engine.types import Edge, NodeDefinition, RunOptions


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NodeSchema(_CamelModel):
    """Schema for a node in a workflow graph."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "fetch",
                "type": "api",
                "config": {"url": "https://api.example.com/users", "method": "GET"},
            }
        },
    )

    id: str = Field(..., min_length=1, description="Unique node id within the graph")
    type: str = Field(..., min_length=1, description="Node type identifier")
    label: str | None = Field(None, description="Display label for the node")
    config: dict[str, Any] = Field(default_factory=dict, description="Node configuration")
    retry_on_fail: int = Field(0, ge=0, description="Number of retries on failure")
    retry_delay: int = Field(1000, ge=0, description="Delay between retries in ms")
    continue_on_fail: bool = Field(False, description="Let children run after a failure")
    timeout_ms: int | None = Field(None, gt=0, description="Per-node timeout in ms")

    def to_definition(self) -> NodeDefinition:
        return NodeDefinition(
            id=self.id,
            type=self.type,
            config=self.config,
            label=self.label,
            retry_on_fail=self.retry_on_fail,
            retry_delay=self.retry_delay,
            continue_on_fail=self.continue_on_fail,
            timeout_ms=self.timeout_ms,
        )


class EdgeSchema(_CamelModel):
    """Schema for a directed edge between two nodes."""

    source: str = Field(..., description="Source node id")
    target: str = Field(..., description="Target node id")

    def to_edge(self) -> Edge:
        return Edge(source=self.source, target=self.target)


class RunOptionsSchema(_CamelModel):
    """Per-run options. Unset fields fall back to the service settings."""

    max_parallelism: int | None = Field(None, ge=1)
    node_timeout_ms: int | None = Field(None, gt=0)
    fail_fast_on_loop_iteration: bool | None = None
    skip_on_short_circuit: bool | None = None

    def to_run_options(self, settings: Settings) -> RunOptions:
        overrides = {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}
        return dataclasses.replace(RunOptions.from_settings(settings), **overrides)


class ExecuteRequest(_CamelModel):
    """Request schema for running a workflow graph."""

    nodes: list[NodeSchema] = Field(..., description="Nodes of the graph")
    edges: list[EdgeSchema] = Field(default_factory=list, description="Directed edges")
    options: RunOptionsSchema = Field(default_factory=RunOptionsSchema)
    initial_data: dict[str, Any] = Field(
        default_factory=dict, description="Inbound data handed to every start node"
    )
