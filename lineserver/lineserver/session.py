"""Per-connection state and the reactor that owns it.

* ``ConnectionSession`` — state for one live connection: its output
  sink, the pending request id, and where it is in the dispatch cycle.
* ``Reactor`` — the arena of sessions indexed by connection id.  Every
  inbound line and every handler completion goes through it.

All reactor entry points are synchronous and run to completion, so the
session state needs no locking.
"""

from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Sequence

import anyio
from anyio.streams.memory import MemoryObjectSendStream

from lineproto.jsonrpc import (
    INVALID_JSON_REQUEST,
    JsonCodec,
    JsonRpcRequest,
    RequestError,
    is_false,
    no_such_method,
    request_method,
    request_params,
)
from lineserver.dispatcher import Dispatcher, MethodRegistry
from lineserver.emitter import ResponseEmitter
from lineserver.messages import Completion, Error, Result

log = logging.getLogger(__name__)


class SessionState(enum.Enum):
    IDLE = "idle"
    AWAITING_HANDLER = "awaiting_handler"


@dataclass(slots=True)
class ConnectionSession:
    """State for one live connection."""

    id: int
    sink: MemoryObjectSendStream[str]
    pending_id: Any = None
    state: SessionState = SessionState.IDLE

    def write_line(self, line: str) -> None:
        try:
            self.sink.send_nowait(line)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            log.debug("connection %s sink closed, line dropped", self.id)


class Reactor:
    """Owns every live session and drives the dispatch state machine.

    Parameters
    ----------
    registry : MethodRegistry
        Shared, read-only method table.
    dispatcher : Dispatcher
        Where resolved calls are posted.
    codec : JsonCodec
        Load/Dump capability for lines in both directions.
    legacy_falsy_ids : bool
        Echo ``0``, ``""``, ``"0"`` and ``false`` ids as ``null``.
    """

    def __init__(
        self,
        registry: MethodRegistry,
        dispatcher: Dispatcher,
        codec: JsonCodec | None = None,
        legacy_falsy_ids: bool = False,
    ) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._codec = codec or JsonCodec()
        self._legacy_falsy_ids = legacy_falsy_ids
        self._sessions: dict[int, ConnectionSession] = {}
        self._ids = itertools.count(1)
        self.emitter = ResponseEmitter(self.get, self._codec)

    # -- Arena ---------------------------------------------------------
    def open(self, sink: MemoryObjectSendStream[str]) -> ConnectionSession:
        session = ConnectionSession(id=next(self._ids), sink=sink)
        self._sessions[session.id] = session
        return session

    def close(self, connection_id: int) -> None:
        session = self._sessions.pop(connection_id, None)
        if session is not None and session.state is SessionState.AWAITING_HANDLER:
            log.info("connection %s closed with a request in flight", connection_id)

    def get(self, connection_id: int) -> ConnectionSession | None:
        return self._sessions.get(connection_id)

    def __len__(self) -> int:
        return len(self._sessions)

    # -- Inbound -------------------------------------------------------
    def on_line(self, connection_id: int, raw_line: str | bytes) -> None:
        session = self._sessions.get(connection_id)
        if session is None:
            log.debug("line for unknown connection %s ignored", connection_id)
            return

        try:
            raw = self._codec.load(raw_line)
        except (ValueError, RecursionError):
            log.warning("connection %s: undecodable line %.80r", connection_id, raw_line)
            self.emitter.report_error(connection_id, INVALID_JSON_REQUEST)
            return

        try:
            method = request_method(raw)
        except RequestError as exc:
            self._reject(connection_id, exc)
            return

        handler = self._registry.resolve(method)
        if handler is None:
            log.warning("connection %s: unknown method %r", connection_id, method)
            self.emitter.report_error(connection_id, no_such_method(method))
            return

        try:
            request = JsonRpcRequest(method=method, params=request_params(raw), id=raw.get("id"))
        except RequestError as exc:
            self._reject(connection_id, exc)
            return

        req_id = request.id
        if self._legacy_falsy_ids and is_false(req_id):
            req_id = None
        # Overwrites whatever was pending; responses are not pipelined.
        session.pending_id = req_id
        session.state = SessionState.AWAITING_HANDLER
        log.debug("rpc ← %s(id=%r) on connection %s", request.method, req_id, connection_id)
        self._dispatcher.dispatch(connection_id, handler, request.params)

    def _reject(self, connection_id: int, exc: RequestError) -> None:
        log.warning("connection %s: %s", connection_id, exc)
        self.emitter.report_error(connection_id, str(exc))

    # -- Completions ---------------------------------------------------
    def on_result(self, connection_id: int, values: Sequence[Any]) -> None:
        self._settle(connection_id)
        self.emitter.report_result(connection_id, values)

    def on_error(self, connection_id: int, message: str) -> None:
        self._settle(connection_id)
        self.emitter.report_error(connection_id, message)

    def complete(self, message: Completion) -> None:
        """Route a message posted by the owning process."""
        if isinstance(message, Result):
            self.on_result(message.connection_id, message.values)
        elif isinstance(message, Error):
            self.on_error(message.connection_id, message.message)
        else:
            raise TypeError(f"unexpected completion message: {message!r}")

    def _settle(self, connection_id: int) -> None:
        session = self._sessions.get(connection_id)
        if session is not None:
            session.state = SessionState.IDLE
