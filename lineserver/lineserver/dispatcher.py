"""Method registry and dispatcher.

The registry maps JSON-RPC method names to handler references, nothing
more.  The dispatcher posts an ``Invoke`` message for the owning process
and returns immediately.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Mapping, Sequence

import anyio
from anyio.streams.memory import MemoryObjectSendStream

from lineserver.messages import HandlerRef, Invoke

log = logging.getLogger(__name__)


class MethodRegistry:
    """Read-only method → handler reference mapping.

    Usage::

        registry = MethodRegistry({"echo": "echo", "sum": sum_handler})
        registry.resolve("echo")   # -> "echo"
        registry.resolve("nope")   # -> None

    References are not checked against the owning process here; an
    unknown state name only surfaces when it is invoked.
    """

    def __init__(self, handlers: Mapping[str, HandlerRef] | None = None) -> None:
        self._handlers: Mapping[str, HandlerRef] = MappingProxyType(dict(handlers or {}))

    def resolve(self, method: str) -> HandlerRef | None:
        return self._handlers.get(method)

    # -- Introspection -------------------------------------------------
    @property
    def methods(self) -> list[str]:
        return list(self._handlers.keys())

    def __contains__(self, method: object) -> bool:
        return method in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


class Dispatcher:
    """Hands invocations to the owning process without blocking."""

    def __init__(self, invocations: MemoryObjectSendStream[Invoke]) -> None:
        self._invocations = invocations

    def dispatch(
        self, connection_id: int, handler: HandlerRef, params: Sequence[Any]
    ) -> None:
        try:
            self._invocations.send_nowait(Invoke(connection_id, handler, params))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            log.warning("dispatch to %r dropped: handler process is gone", handler)
