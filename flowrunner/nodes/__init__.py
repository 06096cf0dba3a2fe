"""Workflow node executors."""

from .base import BaseNode, FunctionNode
from .trigger import TriggerNode
from .api import ApiNode, HttpResponse, HttpTransport, HttpxTransport
from .transformer import TransformerNode
from .filter import FilterNode
from .data_mapper import DataMapperNode
from .loop import LoopNode

__all__ = [
    "BaseNode",
    "FunctionNode",
    "TriggerNode",
    "ApiNode",
    "HttpResponse",
    "HttpTransport",
    "HttpxTransport",
    "TransformerNode",
    "FilterNode",
    "DataMapperNode",
    "LoopNode",
]
