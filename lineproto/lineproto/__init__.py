"""lineproto — JSON-RPC 1.0 wire-format models."""

from lineproto.jsonrpc import (
    INVALID_JSON_REQUEST,
    METHOD_REQUIRED,
    NO_SUCH_METHOD,
    PARAMS_NOT_ARRAY,
    JsonCodec,
    JsonRpcRequest,
    RequestError,
    ResponseEnvelope,
    is_false,
    no_such_method,
    request_method,
    request_params,
)

__all__ = [
    "JsonRpcRequest",
    "ResponseEnvelope",
    "JsonCodec",
    "RequestError",
    "no_such_method",
    "is_false",
    "request_method",
    "request_params",
    "INVALID_JSON_REQUEST",
    "METHOD_REQUIRED",
    "NO_SUCH_METHOD",
    "PARAMS_NOT_ARRAY",
]
