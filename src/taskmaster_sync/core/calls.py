# src/taskmaster_sync/core/calls.py

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .errors import AdapterError

T = TypeVar("T")


async def call_adapter(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    timeout: float,
    operation: str,
    task_id: str | None = None,
) -> T:
    """
    Await one adapter call with a timeout.

    Anything the adapter raises (including a timeout) comes out as AdapterError;
    cancellation of the caller still propagates.
    """
    try:
        return await asyncio.wait_for(fn(*args), timeout=max(0.001, float(timeout)))
    except AdapterError as e:
        if e.operation is None:
            e.operation = operation
        if e.task_id is None:
            e.task_id = task_id
        raise
    except TimeoutError:
        raise AdapterError(
            f"{operation} timed out after {timeout:.1f}s", operation=operation, task_id=task_id
        ) from None
    except Exception as e:
        raise AdapterError(f"{operation} failed: {e}", operation=operation, task_id=task_id) from e
