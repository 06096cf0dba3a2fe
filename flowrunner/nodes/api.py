"""API node - makes HTTP requests through an injected transport."""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, TYPE_CHECKING

import httpx

from ..core.exceptions import HttpStatusError, NetworkError, NodeConfigurationError
from ..engine.expressions import expression_engine
from .base import BaseNode

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition, NodeExecutionResult

logger = logging.getLogger(__name__)

METHODS_WITH_BODY = ("POST", "PUT", "PATCH", "DELETE")


@dataclass
class HttpResponse:
    """Transport-neutral HTTP response."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    text: str = ""

    def json(self) -> Any:
        return json.loads(self.text)


class HttpTransport(Protocol):
    """Async HTTP transport injected into the api node. Must be safe for concurrent use."""

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
        ...


class HttpxTransport:
    """HttpTransport backed by a (shared) httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        self._client = client
        self._timeout = timeout

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
        if self._client is not None:
            return await self._send(self._client, method, url, headers, params, json_body, content)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._send(client, method, url, headers, params, json_body, content)

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        headers: dict[str, str],
        params: dict[str, Any],
        json_body: Any,
        content: str | None,
    ) -> HttpResponse:
        try:
            response = await client.request(
                method=method,
                url=url,
                headers=headers,
                params=params or None,
                json=json_body,
                content=content,
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {url} failed: {e}", url=url) from e
        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            text=response.text,
        )


class ApiNode(BaseNode):
    """API call node - sends one HTTP request per execution."""

    def __init__(self, transport: HttpTransport | None = None) -> None:
        self.transport = transport

    @property
    def type(self) -> str:
        return "api"

    @property
    def description(self) -> str:
        return "Makes HTTP requests to external APIs"

    async def execute(
        self,
        context: ExecutionContext,
        node: NodeDefinition,
        inbound: dict[str, Any],
    ) -> NodeExecutionResult:
        config = expression_engine.resolve(node.config, inbound)

        url = config.get("url")
        if not url:
            raise NodeConfigurationError(f'Missing required config "url" in node "{node.id}"', field="url")
        method = str(config.get("method") or "GET").upper()
        response_type = config.get("responseType", "json")
        fail_on_http_error = config.get("failOnHttpError", True)

        headers = self._build_headers(config.get("headers"))
        params = dict(config.get("params") or {})
        self._apply_auth(config.get("auth"), headers, params, node)

        json_body: Any = None
        content: str | None = None
        if method in METHODS_WITH_BODY:
            body = config.get("body")
            if isinstance(body, str) and body:
                try:
                    json_body = json.loads(body)
                except json.JSONDecodeError:
                    content = body  # Keep as string
            elif body is not None:
                json_body = body

        if self.transport is None:
            raise NetworkError(f'No HTTP transport configured for api node "{node.id}"', url=url)

        logger.debug("api node %s: %s %s", node.id, method, url)
        response = await self.transport.request(
            method,
            url,
            headers=headers,
            params=params,
            json_body=json_body,
            content=content,
        )

        body_data = self._parse_body(response, response_type)

        if fail_on_http_error and not 200 <= response.status_code < 300:
            raise HttpStatusError(response.status_code, url=url, body=body_data)

        return self.output({
            "statusCode": response.status_code,
            "headers": response.headers,
            "body": body_data,
        })

    def _build_headers(self, headers_param: Any) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if isinstance(headers_param, list):
            for h in headers_param:
                if h.get("name"):
                    headers[h["name"]] = str(h.get("value", ""))
        elif isinstance(headers_param, dict):
            headers.update({k: str(v) for k, v in headers_param.items()})
        return headers

    def _apply_auth(
        self,
        auth: Any,
        headers: dict[str, str],
        params: dict[str, Any],
        node: NodeDefinition,
    ) -> None:
        if not auth:
            return
        if not isinstance(auth, dict):
            raise NodeConfigurationError(f'Invalid auth config in node "{node.id}"', field="auth")

        auth_type = auth.get("type")
        if auth_type == "bearer":
            headers["Authorization"] = f"Bearer {auth.get('token', '')}"
        elif auth_type == "basic":
            raw = f"{auth.get('username', '')}:{auth.get('password', '')}".encode()
            headers["Authorization"] = f"Basic {base64.b64encode(raw).decode()}"
        elif auth_type == "apiKey":
            name = auth.get("name")
            if not name:
                raise NodeConfigurationError(
                    f'apiKey auth in node "{node.id}" needs a "name"', field="auth.name"
                )
            if auth.get("in", "header") == "query":
                params[name] = auth.get("value", "")
            else:
                headers[name] = str(auth.get("value", ""))
        else:
            raise NodeConfigurationError(
                f'Unsupported auth type "{auth_type}" in node "{node.id}"', field="auth.type"
            )

    def _parse_body(self, response: HttpResponse, response_type: str) -> Any:
        if response_type == "text":
            return response.text
        try:
            return response.json()
        except ValueError:
            return response.text
