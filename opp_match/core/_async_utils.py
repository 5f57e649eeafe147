"""Internal async helpers shared by async modules."""

from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Any, Callable

from .errors import BackendUnavailableError, MatchCoreError


async def _maybe_await(value: Any) -> Any:
    """Await awaitables and return non-awaitable values unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


async def call_bounded(
    fn: Callable[..., Any],
    *args: Any,
    timeout: float | None,
    operation: str = "",
    **kwargs: Any,
) -> Any:
    """Run a sync or async callable without blocking the event loop.

    Coroutine functions are awaited directly; plain callables run in a worker
    thread. Either way the call is bounded by `timeout` seconds. Timeouts and
    unexpected exceptions surface as `BackendUnavailableError`; errors from our
    own taxonomy pass through untouched.
    """

    label = operation or getattr(fn, "__name__", "backend call")
    if inspect.iscoroutinefunction(fn):
        awaitable = fn(*args, **kwargs)
    else:
        awaitable = asyncio.to_thread(functools.partial(fn, *args, **kwargs))

    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise BackendUnavailableError(f"{label} timed out after {timeout}s") from exc
    except MatchCoreError:
        raise
    except (ValueError, KeyError, TypeError):
        raise
    except Exception as exc:  # noqa: BLE001
        raise BackendUnavailableError(f"{label} failed: {exc}") from exc
