"""Shared fixtures for the flowrunner test suite."""

from __future__ import annotations

import json
from typing import Any, Callable

import pytest

from flowrunner.core.config import Settings
from flowrunner.engine.node_registry import ExecutorRegistry, register_builtin_nodes
from flowrunner.engine.types import CancellationToken, ExecutionContext, NodeDefinition, RunOptions
from flowrunner.engine.workflow_runner import WorkflowRunner
from flowrunner.nodes.api import HttpResponse


class FakeTransport:
    """In-memory HttpTransport: responses keyed by URL, every call recorded."""

    def __init__(self) -> None:
        self.routes: dict[str, HttpResponse | Callable[..., HttpResponse]] = {}
        self.calls: list[dict[str, Any]] = []

    def add(self, url: str, body: Any, status_code: int = 200) -> None:
        text = body if isinstance(body, str) else json.dumps(body)
        self.routes[url] = HttpResponse(
            status_code=status_code,
            headers={"content-type": "application/json"},
            text=text,
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        params: dict[str, Any],
        json_body: Any = None,
        content: str | None = None,
    ) -> HttpResponse:
        self.calls.append({
            "method": method,
            "url": url,
            "headers": headers,
            "params": params,
            "json": json_body,
            "content": content,
        })
        route = self.routes.get(url)
        if route is None:
            return HttpResponse(status_code=404, text='{"error": "not found"}')
        if callable(route):
            return route(method, url, json_body)
        return route


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def registry(transport: FakeTransport) -> ExecutorRegistry:
    return register_builtin_nodes(ExecutorRegistry(), transport=transport)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def runner(registry: ExecutorRegistry, settings: Settings) -> WorkflowRunner:
    return WorkflowRunner(registry=registry, settings=settings)


@pytest.fixture
def make_context() -> Callable[..., ExecutionContext]:
    """Build an ExecutionContext for calling an executor directly."""

    def _make(node: NodeDefinition, options: RunOptions | None = None) -> ExecutionContext:
        return ExecutionContext(
            execution_id="exec_test",
            node=node,
            options=options or RunOptions(),
            cancel_token=CancellationToken(),
        )

    return _make
