"""
Field transformations and {{ }} template expressions.

Uses simpleeval for safe expression evaluation (no eval() or exec()).
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Callable

from simpleeval import SimpleEval, DEFAULT_FUNCTIONS, DEFAULT_OPERATORS

from ..core.exceptions import MappingError

logger = logging.getLogger(__name__)

_TEMPLATE_PATTERN = re.compile(r"\{\{(.+?)\}\}")


def _to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        return float(text)


def _to_boolean(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y", "on")
    return bool(value)


# Named transformations selectable from a field mapping
TRANSFORMATIONS: dict[str, Callable[[Any], Any]] = {
    "toUpperCase": lambda v: str(v).upper(),
    "toLowerCase": lambda v: str(v).lower(),
    "trim": lambda v: str(v).strip(),
    "toNumber": _to_number,
    "toInteger": lambda v: int(_to_number(v)),
    "toString": lambda v: json.dumps(v) if isinstance(v, (dict, list)) else str(v),
    "toBoolean": _to_boolean,
    "length": len,
    "reverse": lambda v: v[::-1] if isinstance(v, (str, list)) else v,
    "round": lambda v: round(_to_number(v)),
    "abs": lambda v: abs(_to_number(v)),
    "json": json.dumps,
    "parseJson": lambda v: json.loads(v) if isinstance(v, str) else v,
    "first": lambda v: v[0] if v else None,
    "last": lambda v: v[-1] if v else None,
    "sum": sum,
    "sort": sorted,
    "unique": lambda v: list(dict.fromkeys(v)),
}


class ExpressionEngine:
    """
    Safe evaluator for field transformations and config templates.

    A transformation is either a name from TRANSFORMATIONS or an expression
    over `value` (the field) and `item` (the whole inbound record), e.g.
    `value * 100` or `upper(value) + "-" + item["id"]`.
    """

    def __init__(self) -> None:
        self._setup_evaluator()

    def _setup_evaluator(self) -> None:
        """Set up the safe evaluator with allowed functions."""
        self.functions: dict[str, Callable[..., Any]] = {
            **DEFAULT_FUNCTIONS,
            # Type conversion
            "str": str,
            "int": int,
            "float": float,
            "bool": bool,
            "list": list,
            "dict": dict,
            # String functions
            "lower": lambda s: str(s).lower(),
            "upper": lambda s: str(s).upper(),
            "trim": lambda s: str(s).strip(),
            "split": lambda s, sep=" ": str(s).split(sep),
            "join": lambda arr, sep="": sep.join(str(x) for x in arr),
            "replace": lambda s, old, new: str(s).replace(old, new),
            "length": len,
            # Array functions
            "first": lambda arr: arr[0] if arr else None,
            "last": lambda arr: arr[-1] if arr else None,
            "sort": sorted,
            "unique": lambda arr: list(dict.fromkeys(arr)),
            # Math functions
            "abs": abs,
            "min": min,
            "max": max,
            "sum": sum,
            "round": round,
            "floor": math.floor,
            "ceil": math.ceil,
            # JSON functions
            "json_stringify": json.dumps,
            "json_parse": lambda s: json.loads(s) if s else None,
            # Object functions
            "keys": lambda d: list(d.keys()) if isinstance(d, dict) else [],
            "values": lambda d: list(d.values()) if isinstance(d, dict) else [],
            "get": lambda d, key, default=None: d.get(key, default) if isinstance(d, dict) else default,
        }

    def _evaluator(self, names: dict[str, Any]) -> SimpleEval:
        # A fresh evaluator per call: nodes run concurrently
        evaluator = SimpleEval(
            operators=DEFAULT_OPERATORS.copy(),
            functions=self.functions,
            names=names,
        )
        return evaluator

    def transform(
        self,
        transformation: str,
        value: Any,
        item: dict[str, Any] | None = None,
        field: str | None = None,
    ) -> Any:
        """
        Apply a named transformation or expression to `value`.

        Raises:
            MappingError: if the transformation is unknown or fails
        """
        named = TRANSFORMATIONS.get(transformation)
        try:
            if named is not None:
                return named(value)
            return self._evaluator({"value": value, "item": item or {}}).eval(transformation)
        except Exception as e:
            raise MappingError(
                f'Transformation "{transformation}" failed for field "{field}": {e}',
                field=field,
            ) from e

    def resolve(self, value: Any, data: dict[str, Any]) -> Any:
        """
        Resolve all {{ }} templates in a config value against inbound `data`.

        Handles strings, objects, and arrays recursively. `$json` refers to
        the inbound record. A string that is a single template keeps the
        evaluated type; mixed content is interpolated as text.
        """
        if isinstance(value, str):
            return self._resolve_string(value, data)

        if isinstance(value, list):
            return [self.resolve(item, data) for item in value]

        if isinstance(value, dict):
            return {key: self.resolve(val, data) for key, val in value.items()}

        return value

    def _resolve_string(self, string: str, data: dict[str, Any]) -> Any:
        trimmed = string.strip()

        if trimmed.startswith("{{") and trimmed.endswith("}}"):
            inner = trimmed[2:-2].strip()
            if "{{" not in inner:
                return self._evaluate(inner, data)

        return _TEMPLATE_PATTERN.sub(
            lambda match: self._stringify(self._evaluate(match.group(1).strip(), data)),
            string,
        )

    def _evaluate(self, expression: str, data: dict[str, Any]) -> Any:
        transformed = re.sub(r"\$json\.(\w+)", r'json_data.get("\1")', expression)
        transformed = transformed.replace("$json", "json_data")
        try:
            return self._evaluator({"json_data": data}).eval(transformed)
        except Exception as e:
            raise MappingError(f'Expression "{expression}" could not be evaluated: {e}') from e

    def _stringify(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return str(value)


# Singleton instance
expression_engine = ExpressionEngine()
