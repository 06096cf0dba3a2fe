"""Storage module for execution history."""

from .execution_store import ExecutionStore, execution_store

__all__ = ["ExecutionStore", "execution_store"]
