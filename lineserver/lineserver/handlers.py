"""Example handlers.

Registered as named states on the module-level ``states`` table; the
``HANDLERS`` mapping exposes them as JSON-RPC methods of the same name.
"""

from __future__ import annotations

import logging
from numbers import Number

import anyio

from lineserver.worker import HandlerTable, ReplyHandle

log = logging.getLogger(__name__)

states = HandlerTable()


@states.handler("echo")
async def echo(reply: ReplyHandle, *params) -> None:
    """Report params unchanged."""
    reply.result(*params)


@states.handler("sum")
async def sum_(reply: ReplyHandle, *params) -> None:
    """Add numbers."""
    if not all(isinstance(p, Number) and not isinstance(p, bool) for p in params):
        reply.error("sum expects numeric params")
        return
    reply.result(sum(params))


@states.handler("sleep")
async def sleep(reply: ReplyHandle, seconds=0, *_) -> None:
    """Reply with *seconds* after waiting that long."""
    await anyio.sleep(float(seconds))
    reply.result(seconds)


HANDLERS = {name: name for name in states.names}
