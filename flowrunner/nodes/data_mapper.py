"""Data Mapper node - reshape inbound data with a declarative mapping."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from ..core.exceptions import MappingError, NodeConfigurationError
from ..engine.expressions import expression_engine
from ..engine.paths import MISSING, get_path, set_path
from .base import BaseNode

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition, NodeExecutionResult


class DataMapperNode(BaseNode):
    """
    Builds a new record from `mapping: {targetPath: rule}`.

    A rule is one of:
        "source.path"                           copy a value
        {"path", "default"?, "transformation"?} copy with fallback / transform
        {"value": ...}                          literal
        {"fields": {...}}                       nested object mapping
        {"path", "each": {...}}                 map every element of a list
    """

    required_config = ("mapping",)

    @property
    def type(self) -> str:
        return "dataMapper"

    @property
    def description(self) -> str:
        return "Reshapes inbound data according to a declarative mapping"

    async def execute(
        self,
        context: ExecutionContext,
        node: NodeDefinition,
        inbound: dict[str, Any],
    ) -> NodeExecutionResult:
        mapping = self.get_config(node, "mapping")
        if not isinstance(mapping, dict):
            raise NodeConfigurationError(
                f'"mapping" in node "{node.id}" must be an object', field="mapping"
            )
        return self.output(self._map_object(mapping, inbound))

    def _map_object(self, mapping: dict[str, Any], source: Any) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for target, rule in mapping.items():
            value = self._map_value(target, rule, source)
            if value is not MISSING:
                set_path(result, target, value)
        return result

    def _map_value(self, target: str, rule: Any, source: Any) -> Any:
        if isinstance(rule, str):
            return self._lookup(rule, source, {})

        if not isinstance(rule, dict):
            raise NodeConfigurationError(
                f'Mapping for "{target}" must be a path string or an object', field=target
            )

        if "value" in rule:
            return rule["value"]

        if "fields" in rule:
            base = self._lookup(rule["path"], source, rule) if rule.get("path") else source
            return self._map_object(rule["fields"], base)

        if "path" not in rule:
            raise NodeConfigurationError(
                f'Mapping for "{target}" needs one of "path", "value" or "fields"', field=target
            )

        value = self._lookup(rule["path"], source, rule)
        if value is MISSING:
            return value

        if "each" in rule:
            if not isinstance(value, list):
                raise MappingError(
                    f'Field "{rule["path"]}" must be a list to map each element', field=rule["path"]
                )
            return [self._map_object(rule["each"], element) for element in value]

        if rule.get("transformation"):
            item = source if isinstance(source, dict) else {}
            value = expression_engine.transform(
                rule["transformation"], value, item=item, field=rule["path"]
            )
        return value

    def _lookup(self, path: str, source: Any, rule: dict[str, Any]) -> Any:
        value = get_path(source, path)
        if value is not MISSING:
            return value
        if "default" in rule:
            return rule["default"]
        if rule.get("required", True) is False:
            return MISSING
        raise MappingError(f'Source field "{path}" is missing', field=path)
