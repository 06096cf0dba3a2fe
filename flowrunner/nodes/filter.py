"""Filter node - continue the branch only when every condition holds."""

from __future__ import annotations

import re
from typing import Any, TYPE_CHECKING

from ..core.exceptions import NodeConfigurationError
from ..engine.paths import MISSING, get_path
from .base import BaseNode

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition, NodeExecutionResult


OPERATIONS = (
    "equals",
    "notEquals",
    "exists",
    "notExists",
    "contains",
    "notContains",
    "gt",
    "gte",
    "lt",
    "lte",
    "regex",
)


class FilterNode(BaseNode):
    """Filter node - short-circuits its branch when the inbound record does not match."""

    @property
    def type(self) -> str:
        return "filter"

    @property
    def description(self) -> str:
        return "Stops the branch unless all conditions match the inbound data"

    async def execute(
        self,
        context: ExecutionContext,
        node: NodeDefinition,
        inbound: dict[str, Any],
    ) -> NodeExecutionResult:
        conditions = self.get_config(node, "conditions", [])

        for condition in conditions:
            field = condition.get("field", "")
            operator = condition.get("operator", "equals")
            if operator not in OPERATIONS:
                raise NodeConfigurationError(
                    f'Unknown filter operator "{operator}" in node "{node.id}"', field="operator"
                )

            field_value = get_path(inbound, field)
            if not self._evaluate(field_value, operator, condition.get("value")):
                return self.short_circuit({
                    "matched": False,
                    "failedCondition": dict(condition),
                    "input": inbound,
                })

        return self.output(inbound)

    def _evaluate(self, field_value: Any, operation: str, compare_value: Any) -> bool:
        """Evaluate the condition. `field_value` is MISSING when the path is absent."""
        present = field_value is not MISSING and field_value is not None
        if operation == "exists":
            return present
        elif operation == "notExists":
            return not present
        elif operation == "equals":
            return present and _loosely_equal(field_value, compare_value)
        elif operation == "notEquals":
            return not (present and _loosely_equal(field_value, compare_value))
        elif not present:
            return operation == "notContains"
        elif operation == "contains":
            if isinstance(field_value, (list, tuple)):
                return compare_value in field_value
            return str(compare_value) in str(field_value)
        elif operation == "notContains":
            if isinstance(field_value, (list, tuple)):
                return compare_value not in field_value
            return str(compare_value) not in str(field_value)
        elif operation == "regex":
            try:
                return bool(re.search(str(compare_value), str(field_value)))
            except re.error:
                return False

        try:
            left, right = float(field_value), float(compare_value)
        except (ValueError, TypeError):
            return False
        if operation == "gt":
            return left > right
        elif operation == "gte":
            return left >= right
        elif operation == "lt":
            return left < right
        return left <= right


def _loosely_equal(left: Any, right: Any) -> bool:
    """`==`, except a string compared to a number/bool compares string forms."""
    if left == right:
        return True
    scalars = (int, float, bool)
    if isinstance(left, str) and isinstance(right, scalars):
        return left == _scalar_text(right)
    if isinstance(right, str) and isinstance(left, scalars):
        return right == _scalar_text(left)
    return False


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
