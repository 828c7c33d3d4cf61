"""
Proxy generation for remote methods.

Every remotely callable method of a model gets one local stand-in function.
The function pops an optional trailing ``(error, result)`` callback, issues
exactly one invocation through the invoker and returns an ``asyncio.Future``
settled with the outcome. The callback, when given, is just another listener
on that same future.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from functools import partial
from typing import Any, Callable, List, Optional

from remotezero.core.classes import MethodDescriptor
from remotezero.core.config import AppConfig, ModelEntry, app_config
from remotezero.core.exceptions import ConfigError
from remotezero.core.interfaces import AbstractInvoker

logger = logging.getLogger(__name__)

Callback = Callable[[Optional[BaseException], Any], None]


def is_callback(value: Any) -> bool:
    # Classes are callable but are passed as arguments, never as callbacks.
    return callable(value) and not isinstance(value, type)


def _attach_callback(future: asyncio.Future, callback: Callback) -> None:
    def _on_done(fut: asyncio.Future) -> None:
        if fut.cancelled():
            callback(asyncio.CancelledError(), None)
            return
        error = fut.exception()
        if error is not None:
            callback(error, None)
        else:
            callback(None, fut.result())

    future.add_done_callback(_on_done)


def _settle(future: asyncio.Future, error: Optional[BaseException], result: Any) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


def _is_not_found(error: BaseException, config: AppConfig) -> bool:
    return getattr(error, "code", None) == config.not_found_code


def _complete(
    future: asyncio.Future,
    descriptor: MethodDescriptor,
    translate_not_found: bool,
    config: AppConfig,
    task: asyncio.Future,
) -> None:
    if task.cancelled():
        _settle(future, asyncio.CancelledError(), None)
        return
    error = task.exception()
    if error is None:
        logger.debug("Remote call %s completed", descriptor.string_name)
        _settle(future, None, task.result())
    elif translate_not_found and _is_not_found(error, config):
        logger.debug("Remote call %s found no record", descriptor.string_name)
        _settle(future, None, None)
    else:
        logger.debug("Remote call %s failed: %s", descriptor.string_name, error)
        _settle(future, error, None)


def _check_scope(entry: ModelEntry, descriptor: MethodDescriptor) -> None:
    model = entry.model
    if descriptor.is_static:
        if getattr(model, "objects", None) is None:
            raise ConfigError(
                f"cannot install static method {descriptor.name}: "
                f"{entry.name} has no static surface"
            )
        return
    if not isinstance(model, type):
        raise ConfigError(
            f"cannot install instance method {descriptor.name}: "
            f"{entry.name} has no instance surface"
        )


def create_proxy_method(
    entry: ModelEntry,
    invoker: AbstractInvoker,
    descriptor: MethodDescriptor,
    config: AppConfig = app_config,
) -> Callable[..., asyncio.Future]:
    """
    Build the local stand-in for one remote method.

    Static proxies are called as ``proxy(*args[, callback])``; instance
    proxies take the instance first, ``proxy(instance, *args[, callback])``.
    The instance identity is read when the proxy is called.

    Raises:
        ConfigError: If the descriptor's scope cannot be resolved on the model
    """
    _check_scope(entry, descriptor)
    translate_not_found = descriptor.name in config.find_method_names
    pk_field = entry.descriptor.pk_field
    string_name = descriptor.string_name

    def _call(instance: Any, args: tuple) -> asyncio.Future:
        call_args: List[Any] = list(args)
        callback = call_args.pop() if call_args and is_callback(call_args[-1]) else None

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        if callback is not None:
            _attach_callback(future, callback)

        try:
            if descriptor.is_static:
                logger.debug("Invoking %s%r", string_name, tuple(call_args))
                pending = invoker.invoke_static(string_name, call_args)
            else:
                instance_id = instance._state.data.get(pk_field)
                logger.debug("Invoking %s on %r%r", string_name, instance_id, tuple(call_args))
                pending = invoker.invoke_instance(string_name, instance_id, call_args)
        except Exception as exc:
            _settle(future, exc, None)
            return future

        if inspect.isawaitable(pending):
            task = asyncio.ensure_future(pending)
        else:
            task = loop.create_future()
            task.set_result(pending)
        task.add_done_callback(
            partial(_complete, future, descriptor, translate_not_found, config)
        )
        return future

    if descriptor.is_static:
        def remote_method_proxy(*args: Any) -> asyncio.Future:
            return _call(None, args)
    else:
        def remote_method_proxy(self: Any, *args: Any) -> asyncio.Future:
            return _call(self, args)

    remote_method_proxy.__name__ = descriptor.name
    remote_method_proxy.__qualname__ = f"{entry.name}.{descriptor.name}"
    remote_method_proxy.__doc__ = f"Remote proxy for {string_name}."
    remote_method_proxy._remotezero_descriptor = descriptor
    return remote_method_proxy


def install_proxy_methods(
    entry: ModelEntry,
    invoker: AbstractInvoker,
    config: AppConfig = app_config,
) -> None:
    """
    Create one proxy per method descriptor of ``entry`` and install it under
    the canonical name and every alias. Excluded names are left untouched.
    """
    for descriptor in entry.descriptor.methods:
        if descriptor.name in config.excluded_method_names:
            logger.debug("Skipping excluded method %s.%s", entry.name, descriptor.name)
            continue
        proxy = create_proxy_method(entry, invoker, descriptor, config)
        for name in descriptor.names:
            entry.add_method(name, proxy, descriptor.is_static)
