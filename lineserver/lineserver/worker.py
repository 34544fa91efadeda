"""Handler execution — the process that owns the registered handlers.

* ``HandlerTable`` — named states that string handler references
  resolve to.
* ``ReplyHandle``  — passed to every handler as its first argument so
  it can report a result or an error whenever it is ready.
* ``HandlerProcess`` — consumes ``Invoke`` messages and runs each
  handler in its own task.

There is no timeout: a handler that never replies leaves its
connection waiting.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Mapping

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from lineserver.messages import Completion, Error, Invoke, Result

log = logging.getLogger(__name__)

# Type alias for a handler: (reply, *params) -> None | Awaitable[None]
HandlerFn = Callable[..., Any]


class HandlerTable:
    """A simple state name → handler mapping.

    Usage::

        states = HandlerTable()

        @states.handler("echo")
        async def echo(reply, *params):
            reply.result(*params)
    """

    def __init__(self) -> None:
        self._states: dict[str, HandlerFn] = {}

    # -- Registration --------------------------------------------------
    def handler(self, name: str) -> Callable[[HandlerFn], HandlerFn]:
        """Decorator that registers *fn* under *name*."""

        def decorator(fn: HandlerFn) -> HandlerFn:
            if name in self._states:
                log.warning("overwriting handler state %r", name)
            self._states[name] = fn
            log.debug("registered handler state %r → %s", name, fn.__qualname__)
            return fn

        return decorator

    def get(self, name: str) -> HandlerFn | None:
        return self._states.get(name)

    # -- Introspection -------------------------------------------------
    @property
    def names(self) -> list[str]:
        return list(self._states.keys())


class ReplyHandle:
    """Connection identity handed to a handler.

    ``result`` and ``error`` post a completion message back to the
    server; both may be called from any task, any number of times.
    """

    __slots__ = ("_connection_id", "_completions")

    def __init__(
        self, connection_id: int, completions: MemoryObjectSendStream[Completion]
    ) -> None:
        self._connection_id = connection_id
        self._completions = completions

    @property
    def id(self) -> int:
        return self._connection_id

    def result(self, *values: Any) -> None:
        self._post(Result(self._connection_id, values))

    def error(self, message: str) -> None:
        self._post(Error(self._connection_id, str(message)))

    def _post(self, message: Completion) -> None:
        try:
            self._completions.send_nowait(message)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            log.debug("server is gone, %r dropped", message)

    def __repr__(self) -> str:
        return f"ReplyHandle(connection={self._connection_id})"


class HandlerProcess:
    """Runs handlers for ``Invoke`` messages until the channel closes."""

    def __init__(
        self,
        completions: MemoryObjectSendStream[Completion],
        states: HandlerTable | Mapping[str, HandlerFn] | None = None,
    ) -> None:
        self._completions = completions
        self._states = states if states is not None else {}

    async def run(self, invocations: MemoryObjectReceiveStream[Invoke]) -> None:
        async with invocations, anyio.create_task_group() as tg:
            async for invoke in invocations:
                tg.start_soon(self._invoke, invoke)

    def _resolve(self, handler: Any) -> HandlerFn | None:
        if callable(handler):
            return handler
        return self._states.get(handler)

    async def _invoke(self, invoke: Invoke) -> None:
        reply = ReplyHandle(invoke.connection_id, self._completions)
        fn = self._resolve(invoke.handler)
        if fn is None:
            log.error("no handler state %r for connection %s", invoke.handler, invoke.connection_id)
            reply.error(f'internal error: no handler state "{invoke.handler}"')
            return

        try:
            outcome = fn(reply, *invoke.params)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            log.exception("handler error for connection %s", invoke.connection_id)
            reply.error(f"internal error: {exc}")
