from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any


async def maybe_await(value: Any) -> Any:
    # Handlers, hooks and world factories may be plain or coroutine functions.
    if inspect.isawaitable(value):
        return await value
    return value


async def invoke(fn: Callable[..., Any], *args: Any) -> Any:
    return await maybe_await(fn(*args))


def source_of(fn: object) -> tuple[str | None, int | None]:
    # Best-effort (file, line) of a callable, used for protocol source references.
    target = inspect.unwrap(fn) if callable(fn) else fn
    code = getattr(target, "__code__", None)
    if code is None:
        code = getattr(getattr(target, "__call__", None), "__code__", None)
    if code is None:
        return None, None
    return code.co_filename, code.co_firstlineno
