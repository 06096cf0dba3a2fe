"""Registry mapping node type tags to executors."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from ..core.exceptions import NodeTypeNotFoundError

if TYPE_CHECKING:
    from ..nodes.api import HttpTransport
    from ..nodes.base import BaseNode, ExecutorFunction


class ExecutorRegistry:
    """Registry for workflow node executors."""

    def __init__(self) -> None:
        self._instances: dict[str, BaseNode] = {}

    def get(self, node_type: str) -> BaseNode:
        """
        Get the executor registered for a node type.

        Raises:
            NodeTypeNotFoundError: If node type is not registered
        """
        if node_type not in self._instances:
            raise NodeTypeNotFoundError(node_type)
        return self._instances[node_type]

    def has(self, node_type: str) -> bool:
        """Check if node type is registered."""
        return node_type in self._instances

    def list(self) -> list[str]:
        """List all registered node types."""
        return list(self._instances.keys())

    def describe(self) -> list[dict[str, Any]]:
        """Type and description of every executor, for API responses."""
        return [
            {"type": node_type, "description": instance.description}
            for node_type, instance in self._instances.items()
        ]

    def register(self, node: type[BaseNode] | BaseNode) -> BaseNode:
        """Register a node class or instance, replacing any executor of the same type."""
        instance = node() if isinstance(node, type) else node
        self._instances[instance.type] = instance
        return instance

    def register_executor(
        self,
        node_type: str,
        fn: ExecutorFunction,
        description: str | None = None,
    ) -> BaseNode:
        """Register a plain `(config, inbound) -> output` function for `node_type`."""
        from ..nodes.base import FunctionNode

        return self.register(FunctionNode(node_type, fn, description))

    def unregister(self, node_type: str) -> None:
        self._instances.pop(node_type, None)


# Default registry used when a runner is created without one
node_registry = ExecutorRegistry()


def register_builtin_nodes(
    registry: ExecutorRegistry | None = None,
    transport: HttpTransport | None = None,
) -> ExecutorRegistry:
    """Register the built-in executors; the api node uses `transport` for I/O."""
    from ..nodes import (
        TriggerNode,
        ApiNode,
        TransformerNode,
        FilterNode,
        DataMapperNode,
        LoopNode,
    )

    registry = registry if registry is not None else node_registry

    registry.register(TriggerNode)
    registry.register(ApiNode(transport=transport))
    registry.register(TransformerNode)
    registry.register(FilterNode)
    registry.register(DataMapperNode)
    registry.register(LoopNode)
    return registry
