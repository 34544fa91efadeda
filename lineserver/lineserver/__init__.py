"""lineserver — line-framed JSON-RPC 1.0 server."""

from lineserver.config import ServerConfig
from lineserver.dispatcher import Dispatcher, MethodRegistry
from lineserver.server import JsonRpcServer
from lineserver.session import ConnectionSession, Reactor, SessionState
from lineserver.worker import HandlerProcess, HandlerTable, ReplyHandle

__all__ = [
    "JsonRpcServer",
    "ServerConfig",
    "MethodRegistry",
    "Dispatcher",
    "Reactor",
    "ConnectionSession",
    "SessionState",
    "HandlerTable",
    "HandlerProcess",
    "ReplyHandle",
]
