"""
HTTP invoker speaking JSON-RPC 2.0 to the remote endpoint.

Every invocation is one POST to ``<url>/jsonrpc``::

    {"jsonrpc": "2.0", "id": 7, "method": "Author.prototype.__get__posts",
     "params": {"ctorArgs": [42], "args": [{"where": {"draft": false}}]}}

The response carries either ``result`` (raw payload, converted through the
registered model types) or ``error`` (mapped onto remotezero exceptions).
"""
from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, Optional, Sequence

import httpx
import jsonschema
from fastapi.encoders import jsonable_encoder

from remotezero.core.exceptions import (ConfigError, RemoteInvocationError,
                                        error_from_payload)
from remotezero.core.interfaces import AbstractInvoker
from remotezero.core.model import Model

logger = logging.getLogger(__name__)

SUPPORTED_ADAPTERS = ("jsonrpc",)

RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "jsonrpc": {"const": "2.0"},
        "result": {},
        "error": {
            "type": "object",
            "required": ["message"],
            "properties": {
                "message": {"type": "string"},
                "code": {"type": ["integer", "string"]},
                "data": {"type": ["object", "null"]},
            },
        },
    },
    "required": ["jsonrpc"],
    "anyOf": [{"required": ["result"]}, {"required": ["error"]}],
}

_CUSTOM_ENCODERS = {Model: lambda instance: jsonable_encoder(instance.to_dict())}


def encode_params(params: Dict[str, Any]) -> Any:
    return jsonable_encoder(params, custom_encoder=_CUSTOM_ENCODERS)


class HttpInvoker(AbstractInvoker):
    def __init__(
        self,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__()
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self._client = client
        self._owns_client = client is None
        self._ids = itertools.count(1)
        self.base_url: Optional[str] = None
        self.adapter: Optional[str] = None

    def connect(self, url: str, adapter: str = "jsonrpc") -> None:
        if adapter not in SUPPORTED_ADAPTERS:
            raise ConfigError(
                f"Unsupported remoting adapter {adapter!r}; expected one of {SUPPORTED_ADAPTERS}"
            )
        self.base_url = url.rstrip("/")
        self.adapter = adapter
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers)
            self._owns_client = True

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/jsonrpc"

    async def invoke_static(self, string_name: str, args: Sequence[Any]) -> Any:
        return await self._call(string_name, {"args": list(args)})

    async def invoke_instance(
        self, string_name: str, instance_id: Any, args: Sequence[Any]
    ) -> Any:
        return await self._call(string_name, {"ctorArgs": [instance_id], "args": list(args)})

    async def _call(self, string_name: str, params: Dict[str, Any]) -> Any:
        if self._client is None or self.base_url is None:
            raise ConfigError("HttpInvoker is not connected. Call connect() first.")

        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": string_name,
            "params": encode_params(params),
        }
        try:
            resp = await self._client.post(self.endpoint, json=body, headers=self.headers)
        except httpx.HTTPError as exc:
            logger.warning("Remote call %s failed to reach %s: %s", string_name, self.endpoint, exc)
            raise RemoteInvocationError(str(exc), code="REMOTE_CONNECTION_ERROR") from exc

        payload = self._parse(resp, string_name)
        if "error" in payload:
            raise error_from_payload(payload["error"])
        return self.convert(self.returns_for(string_name), payload.get("result"))

    def _parse(self, resp: httpx.Response, string_name: str) -> Dict[str, Any]:
        try:
            payload = resp.json()
        except ValueError:
            raise RemoteInvocationError(
                f"Invalid response for {string_name} (HTTP {resp.status_code})",
                code="INVALID_RESPONSE",
                status_code=resp.status_code,
            ) from None
        try:
            jsonschema.validate(payload, RESPONSE_SCHEMA)
        except jsonschema.ValidationError as exc:
            raise RemoteInvocationError(
                f"Malformed response for {string_name}: {exc.message}",
                code="INVALID_RESPONSE",
                status_code=resp.status_code,
            ) from exc
        return payload

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
