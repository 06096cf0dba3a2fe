"""Trigger node - entry signal of a run."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from .base import BaseNode

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition, NodeExecutionResult


class TriggerNode(BaseNode):
    """Entry point node. Emits the run's initial payload and always succeeds."""

    @property
    def type(self) -> str:
        return "trigger"

    @property
    def description(self) -> str:
        return "Entry signal that starts a workflow run"

    async def execute(
        self,
        context: ExecutionContext,
        node: NodeDefinition,
        inbound: dict[str, Any],
    ) -> NodeExecutionResult:
        payload = node.config.get("payload")
        if isinstance(payload, dict):
            return self.output({**inbound, **payload})
        return self.output(dict(inbound))
