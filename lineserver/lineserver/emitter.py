"""Response envelope construction and output."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Sequence

from lineproto.jsonrpc import JsonCodec, ResponseEnvelope

if TYPE_CHECKING:
    from lineserver.session import ConnectionSession

log = logging.getLogger(__name__)


class ResponseEmitter:
    """Builds result/error envelopes and writes them to a session sink.

    Neither report method raises: a connection that has already gone
    away simply loses the line.
    """

    def __init__(
        self,
        lookup: Callable[[int], "ConnectionSession | None"],
        codec: JsonCodec,
    ) -> None:
        self._lookup = lookup
        self._codec = codec

    def report_result(self, connection_id: int, values: Sequence[Any]) -> None:
        result = values[0] if len(values) == 1 else list(values)
        self._emit(connection_id, lambda req_id: ResponseEnvelope.success(req_id, result))

    def report_error(self, connection_id: int, message: str) -> None:
        self._emit(connection_id, lambda req_id: ResponseEnvelope.fail(req_id, str(message)))

    def _emit(
        self, connection_id: int, build: Callable[[Any], ResponseEnvelope]
    ) -> None:
        session = self._lookup(connection_id)
        if session is None:
            log.debug("connection %s is closed, response dropped", connection_id)
            return
        envelope = build(session.pending_id)
        log.debug("rpc → connection %s (id=%r, ok=%s)", connection_id, envelope.id, envelope.ok)
        try:
            line = self._codec.dump(envelope.to_dict())
        except (TypeError, ValueError) as exc:
            log.error("connection %s: response not encodable: %s", connection_id, exc)
            fallback = ResponseEnvelope.fail(envelope.id, f"internal error: {exc}")
            line = self._codec.dump(fallback.to_dict())
        session.write_line(line)
