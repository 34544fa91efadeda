"""JSON-RPC 1.0 wire-format models.

Pure data — no I/O, no business logic.  Both the server and the client
import these for serialisation only.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

# ── Error messages (byte-for-byte on the wire) ──────────────────────
INVALID_JSON_REQUEST = "invalid json request"
METHOD_REQUIRED = 'parameter "method" is required'
PARAMS_NOT_ARRAY = 'parameter "params" must be an array'
NO_SUCH_METHOD = 'no such method "{method}"'


def no_such_method(method: str) -> str:
    return NO_SUCH_METHOD.format(method=method)


class RequestError(ValueError):
    """Raised for a decoded line that is not a usable request.

    ``str(exc)`` is the exact error text sent back to the peer.
    """


# ── JSON Load/Dump capability ────────────────────────────────────────
class JsonCodec:
    """Load/Dump primitive used on both sides of the wire.

    Swap in a subclass to change number handling or key ordering; the
    rest of the system only calls ``load`` and ``dump``.
    """

    def load(self, data: str | bytes) -> Any:
        """Decode one line.  Raises ``ValueError`` on bad input."""
        return json.loads(data)

    def dump(self, obj: Any) -> str:
        return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


# ── Models ───────────────────────────────────────────────────────────
@dataclass(slots=True)
class JsonRpcRequest:
    """Inbound JSON-RPC 1.0 request.

    ``params`` is always positional.  ``id`` may be any JSON value,
    ``None`` when the peer left it out.
    """

    method: str
    params: list[Any] = field(default_factory=list)
    id: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"method": self.method, "params": list(self.params), "id": self.id}

    @classmethod
    def from_dict(cls, raw: Any) -> "JsonRpcRequest":
        """Parse a decoded line, raising ``RequestError`` on bad input."""
        return cls(method=request_method(raw), params=request_params(raw), id=raw.get("id"))


def is_false(value: Any) -> bool:
    """Legacy truthiness: ``null``, ``false``, ``0``, ``""`` and ``"0"``.

    Containers count as true, even when empty.
    """
    if value is None:
        return True
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0
    return value in ("", "0")


def _method_text(method: Any) -> str:
    if isinstance(method, str):
        return method
    if isinstance(method, bool):
        return "1"
    if isinstance(method, (int, float)):
        return "%.15g" % method
    return json.dumps(method, separators=(",", ":"))


def request_method(raw: Any) -> str:
    """Method name of a decoded request object.

    Checked on its own so that an unknown method is reported before
    anything else in the request is looked at.
    """
    if not isinstance(raw, dict):
        raise RequestError(INVALID_JSON_REQUEST)
    method = raw.get("method")
    if is_false(method):
        raise RequestError(METHOD_REQUIRED)
    return _method_text(method)


def request_params(raw: dict[str, Any]) -> list[Any]:
    params = raw.get("params")
    if params is None:
        return []
    if not isinstance(params, list):
        raise RequestError(PARAMS_NOT_ARRAY)
    return params


@dataclass(slots=True)
class ResponseEnvelope:
    """Outbound JSON-RPC 1.0 response.

    All three keys are always serialised; ``error`` is ``None`` on
    success and ``result`` is ``None`` on failure.
    """

    id: Any = None
    result: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "error": self.error, "result": self.result}

    @property
    def ok(self) -> bool:
        return self.error is None

    # -- Factories -----------------------------------------------------
    @classmethod
    def success(cls, req_id: Any, result: Any) -> "ResponseEnvelope":
        return cls(id=req_id, result=result)

    @classmethod
    def fail(cls, req_id: Any, message: str) -> "ResponseEnvelope":
        return cls(id=req_id, error=message)

    @classmethod
    def from_dict(cls, raw: Any) -> "ResponseEnvelope":
        if not isinstance(raw, dict) or not {"id", "error", "result"} <= raw.keys():
            raise ValueError("response must be an object with id, error and result")
        return cls(id=raw["id"], result=raw["result"], error=raw["error"])
