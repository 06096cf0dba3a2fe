"""Base node class for all workflow node executors."""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from ..core.exceptions import NodeConfigurationError
from ..engine.types import NodeExecutionResult

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition


ExecutorFunction = Callable[[dict[str, Any], dict[str, Any]], Awaitable[Any] | Any]


class BaseNode(ABC):
    """
    Abstract base class for all workflow node executors.

    An executor receives the node's config and the merged, read-only
    outputs of its predecessors, and returns an output. Instances are
    stateless and shared across runs.
    """

    # Config keys that must be present for execute() to make sense
    required_config: tuple[str, ...] = ()

    @property
    @abstractmethod
    def type(self) -> str:
        """Node type identifier."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Short description of what the node does."""
        ...

    @abstractmethod
    async def execute(
        self,
        context: ExecutionContext,
        node: NodeDefinition,
        inbound: dict[str, Any],
    ) -> NodeExecutionResult:
        """Execute the node logic."""
        ...

    def get_config(
        self,
        node: NodeDefinition,
        key: str,
        default: Any = None,
    ) -> Any:
        """Get a config value from the node definition."""
        value = node.config.get(key)
        if value is None:
            if default is None and key in self.required_config:
                raise NodeConfigurationError(
                    f'Missing required config "{key}" in node "{node.id}"',
                    field=key,
                )
            return default
        return value

    def output(self, data: Any) -> NodeExecutionResult:
        """Helper to create a normal result."""
        return NodeExecutionResult(output=data)

    def short_circuit(self, data: Any = None) -> NodeExecutionResult:
        """Helper to stop propagation down this branch without failing."""
        return NodeExecutionResult(output=data, short_circuited=True)


class FunctionNode(BaseNode):
    """Adapter exposing a plain `(config, inbound) -> output` function as a node."""

    def __init__(self, node_type: str, fn: ExecutorFunction, description: str | None = None) -> None:
        self._type = node_type
        self._fn = fn
        self._description = description or (inspect.getdoc(fn) or "").split("\n")[0]

    @property
    def type(self) -> str:
        return self._type

    @property
    def description(self) -> str:
        return self._description

    async def execute(
        self,
        context: ExecutionContext,
        node: NodeDefinition,
        inbound: dict[str, Any],
    ) -> NodeExecutionResult:
        if inspect.iscoroutinefunction(self._fn):
            result = await self._fn(node.config, inbound)
        else:
            # Sync functions run in a worker thread
            result = await asyncio.to_thread(self._fn, node.config, inbound)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, NodeExecutionResult):
            return result
        return self.output(result)
