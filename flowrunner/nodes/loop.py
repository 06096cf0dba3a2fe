"""Loop node - run the downstream body once per item."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, TYPE_CHECKING

from ..core.exceptions import LoopIterationError, MappingError, NodeConfigurationError
from ..engine.expressions import expression_engine
from ..engine.paths import MISSING, get_path
from ..engine.types import NodeStatus
from .base import BaseNode

if TYPE_CHECKING:
    from ..engine.reporter import ExecutionResult
    from ..engine.types import ExecutionContext, NodeDefinition, NodeExecutionResult

logger = logging.getLogger(__name__)

_FAILED = (NodeStatus.ERROR, NodeStatus.TIMED_OUT)


class LoopNode(BaseNode):
    """
    Loop node - executes every descendant once per item.

    Config:
        items: list of items (or a "{{ }}" template resolving to one)
        itemsField: dot path to a list in the inbound data, used when items is absent
        concurrency: iterations allowed to run at once (default 1 = sequential)
        failFast: stop starting iterations after the first failure
            (defaults to the run's fail_fast_on_loop_iteration option)

    Each iteration's entry nodes receive `{**inbound, "item": item, "index": i}`.
    """

    @property
    def type(self) -> str:
        return "loop"

    @property
    def description(self) -> str:
        return "Runs the downstream nodes once per item"

    async def execute(
        self,
        context: ExecutionContext,
        node: NodeDefinition,
        inbound: dict[str, Any],
    ) -> NodeExecutionResult:
        items = self._resolve_items(node, inbound)
        concurrency = self._concurrency(node)
        fail_fast = bool(node.config.get("failFast", context.options.fail_fast_on_loop_iteration))

        iterations: list[dict[str, Any]] = [{} for _ in items]
        # Filled per index as iterations finish
        context.body_results[:] = [{} for _ in items]
        semaphore = asyncio.Semaphore(concurrency)
        stopped = False

        async def run_iteration(index: int, item: Any) -> None:
            nonlocal stopped
            async with semaphore:
                if stopped or context.cancel_token.cancelled:
                    iterations[index] = {
                        "index": index,
                        "item": item,
                        "status": "cancelled",
                        "results": {},
                    }
                    return

                results = await context.run_body({**inbound, "item": item, "index": index})
                context.body_results[index] = results
                status = self._iteration_status(results)
                iterations[index] = {
                    "index": index,
                    "item": item,
                    "status": status,
                    "results": {
                        node_id: {
                            "status": r.status.value,
                            "output": r.output,
                            "errorDetail": r.error_detail,
                        }
                        for node_id, r in results.items()
                    },
                }
                if status == "error":
                    logger.info("Loop %s: iteration %d failed", node.id, index)
                    if fail_fast:
                        stopped = True

        await asyncio.gather(*(run_iteration(i, item) for i, item in enumerate(items)))

        failed = [it["index"] for it in iterations if it["status"] == "error"]
        if failed and fail_fast:
            raise LoopIterationError(
                f"Loop stopped after iteration {failed[0]} failed",
                failed_iterations=failed,
                iterations=iterations,
            )

        return self.output({
            "iterations": iterations,
            "total": len(items),
            "succeeded": sum(1 for it in iterations if it["status"] == "success"),
            "failed": len(failed),
        })

    def _resolve_items(self, node: NodeDefinition, inbound: dict[str, Any]) -> list[Any]:
        items = node.config.get("items")
        if isinstance(items, str):
            items = expression_engine.resolve(items, inbound)
        elif items is None and node.config.get("itemsField"):
            field = node.config["itemsField"]
            items = get_path(inbound, field)
            if items is MISSING:
                raise MappingError(f'Loop items field "{field}" is missing', field=field)
        if items is None:
            raise NodeConfigurationError(
                f'Loop node "{node.id}" needs "items" or "itemsField"', field="items"
            )
        if not isinstance(items, (list, tuple)):
            raise MappingError(
                f'Loop items must be a list, got {type(items).__name__}', field="items"
            )
        return list(items)

    def _concurrency(self, node: NodeDefinition) -> int:
        raw = node.config.get("concurrency", 1)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise NodeConfigurationError(
                f'Loop concurrency must be an integer, got "{raw}"', field="concurrency"
            ) from None
        return max(1, value)

    def _iteration_status(self, results: dict[str, ExecutionResult]) -> str:
        statuses = [r.status for r in results.values()]
        if any(s in _FAILED for s in statuses):
            return "error"
        if any(s == NodeStatus.CANCELLED for s in statuses):
            return "cancelled"
        return "success"
