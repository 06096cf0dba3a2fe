"""Transformer node - copy fields through a list of source -> target mappings."""

from __future__ import annotations

import copy
from typing import Any, TYPE_CHECKING

from ..core.exceptions import MappingError, NodeConfigurationError
from ..engine.expressions import expression_engine
from ..engine.paths import MISSING, get_path, set_path
from .base import BaseNode

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition, NodeExecutionResult


class TransformerNode(BaseNode):
    """
    Applies field mappings to the inbound record.

    Config:
        mappings: [{sourceField, targetField, transformation?, default?, required?}]
        keepUnmapped: start from a copy of the inbound record instead of {}
    """

    required_config = ("mappings",)

    @property
    def type(self) -> str:
        return "transformer"

    @property
    def description(self) -> str:
        return "Maps source fields to target fields with optional transformations"

    async def execute(
        self,
        context: ExecutionContext,
        node: NodeDefinition,
        inbound: dict[str, Any],
    ) -> NodeExecutionResult:
        mappings = self.get_config(node, "mappings")
        if not isinstance(mappings, list):
            raise NodeConfigurationError(
                f'"mappings" in node "{node.id}" must be a list', field="mappings"
            )

        result: dict[str, Any] = copy.deepcopy(inbound) if node.config.get("keepUnmapped") else {}

        for mapping in mappings:
            source = mapping.get("sourceField")
            target = mapping.get("targetField") or source
            if not source:
                raise NodeConfigurationError(
                    f'Mapping in node "{node.id}" is missing "sourceField"', field="sourceField"
                )

            value = get_path(inbound, source)
            if value is MISSING:
                if "default" in mapping:
                    value = mapping["default"]
                elif mapping.get("required", True):
                    raise MappingError(
                        f'Required source field "{source}" is missing', field=source
                    )
                else:
                    continue
            elif mapping.get("transformation"):
                value = expression_engine.transform(
                    mapping["transformation"], value, item=inbound, field=source
                )

            set_path(result, target, value)

        return self.output(result)
