"""lineclient — JSON-RPC 1.0 line protocol client."""

from lineclient.client import LineRpcClient, ProtocolError, RpcError

__all__ = ["LineRpcClient", "ProtocolError", "RpcError"]
