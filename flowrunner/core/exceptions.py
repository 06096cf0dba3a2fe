"""Custom exceptions for the workflow executor."""

from typing import Any


class WorkflowEngineError(Exception):
    """Base exception for all workflow engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_detail(self) -> dict[str, Any]:
        """Serializable form recorded in execution results."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "details": dict(self.details),
        }


class ValidationError(WorkflowEngineError):
    """Raised when a workflow graph is malformed. Fatal to the run."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(details or {})
        if field:
            merged["field"] = field
        super().__init__(message=message, details=merged)
        self.field = field


class NodeTypeNotFoundError(WorkflowEngineError):
    """Raised when no executor is registered for a node type."""

    def __init__(self, node_type: str) -> None:
        super().__init__(
            message=f'Unknown node type: "{node_type}"',
            details={"node_type": node_type},
        )
        self.node_type = node_type


class NodeExecutionError(WorkflowEngineError):
    """Base class for failures recorded against a single node."""

    def __init__(
        self,
        message: str,
        node_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(details or {})
        if node_id:
            merged["node_id"] = node_id
        super().__init__(message=message, details=merged)
        self.node_id = node_id


class NetworkError(NodeExecutionError):
    """Raised when an HTTP request fails at the transport level."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message=message, details={"url": url} if url else {})
        self.url = url


class HttpStatusError(NodeExecutionError):
    """Raised when an HTTP response carries a non-2xx status."""

    def __init__(self, status_code: int, url: str | None = None, body: Any = None) -> None:
        super().__init__(
            message=f"HTTP {status_code} returned from {url or 'request'}",
            details={"status_code": status_code, "url": url, "body": body},
        )
        self.status_code = status_code
        self.url = url
        self.body = body


class MappingError(NodeExecutionError):
    """Raised when a mapping references a missing field or cannot be applied."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message=message, details={"field": field} if field else {})
        self.field = field


class NodeConfigurationError(NodeExecutionError):
    """Raised when a node's configuration is unusable."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message=message, details={"field": field} if field else {})
        self.field = field


class NodeTimeoutError(NodeExecutionError):
    """Raised when a node exceeds its time budget."""

    def __init__(self, node_id: str, timeout_ms: int) -> None:
        super().__init__(
            message=f'Node "{node_id}" timed out after {timeout_ms}ms',
            node_id=node_id,
            details={"timeout_ms": timeout_ms},
        )
        self.timeout_ms = timeout_ms


class NodeCancelledError(NodeExecutionError):
    """Recorded for nodes that never started because the run was cancelled."""

    def __init__(self, node_id: str, reason: str | None = None) -> None:
        super().__init__(
            message=f'Node "{node_id}" was cancelled before it started',
            node_id=node_id,
            details={"reason": reason} if reason else {},
        )
        self.reason = reason


class LoopIterationError(NodeExecutionError):
    """Raised by a fail-fast loop once one of its iterations fails."""

    def __init__(
        self,
        message: str,
        failed_iterations: list[int],
        iterations: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            details={
                "failed_iterations": failed_iterations,
                "iterations": iterations or [],
            },
        )
        self.failed_iterations = failed_iterations
