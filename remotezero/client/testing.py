"""
In-process invoker for remotezero.

Routes invocations to Python handlers registered per path identifier, with no
HTTP server needed. Every call is recorded, so tests can assert on exactly
which remote operations ran.
"""
from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence

from remotezero.core.exceptions import RemoteInvocationError
from remotezero.core.interfaces import AbstractInvoker


class InvocationRecord(NamedTuple):
    string_name: str
    instance_id: Any
    args: List[Any]


class LocalInvoker(AbstractInvoker):
    """Invoker that dispatches calls to local handlers."""

    def __init__(self):
        super().__init__()
        self.handlers: Dict[str, Callable[..., Any]] = {}
        self.calls: List[InvocationRecord] = []
        self.url: Optional[str] = None
        self.adapter: Optional[str] = None

    def connect(self, url: str, adapter: str) -> None:
        self.url = url
        self.adapter = adapter

    def register(self, string_name: str, handler: Optional[Callable[..., Any]] = None):
        """
        Register the handler for ``string_name``. Usable as a decorator.

        Static handlers receive the call arguments; instance handlers receive
        the instance id first.
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.handlers[string_name] = func
            return func

        if handler is None:
            return decorator
        return decorator(handler)

    def calls_to(self, string_name: str) -> List[InvocationRecord]:
        return [call for call in self.calls if call.string_name == string_name]

    async def invoke_static(self, string_name: str, args: Sequence[Any]) -> Any:
        self.calls.append(InvocationRecord(string_name, None, list(args)))
        return await self._dispatch(string_name, list(args))

    async def invoke_instance(
        self, string_name: str, instance_id: Any, args: Sequence[Any]
    ) -> Any:
        self.calls.append(InvocationRecord(string_name, instance_id, list(args)))
        return await self._dispatch(string_name, [instance_id, *args])

    async def _dispatch(self, string_name: str, args: List[Any]) -> Any:
        handler = self.handlers.get(string_name)
        if handler is None:
            raise RemoteInvocationError(
                f"Shared method {string_name} not found",
                code="METHOD_NOT_FOUND",
                status_code=404,
            )
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return self.convert(self.returns_for(string_name), result)
