"""Side effects that run after the triggering transaction has been committed."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, List, Tuple

import structlog

logger = structlog.get_logger()

_Callback = Tuple[Callable[..., Awaitable[Any]], tuple, dict]


class AfterCommit:
    """
    Collects coroutine functions and runs them once the state change is durable.

    A failing callback is logged and does not stop the remaining ones: ledger
    exports and notifications are best-effort.
    """

    def __init__(self) -> None:
        self._callbacks: List[_Callback] = []

    def add(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> None:
        self._callbacks.append((func, args, kwargs))

    def clear(self) -> None:
        self._callbacks.clear()

    def __len__(self) -> int:
        return len(self._callbacks)

    async def run(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for func, args, kwargs in callbacks:
            try:
                await func(*args, **kwargs)
            except Exception:
                logger.exception("after_commit_failed", callback=getattr(func, "__qualname__", repr(func)))
