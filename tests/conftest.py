from contextlib import asynccontextmanager

import anyio
import pytest
from lineserver.config import ServerConfig
from lineserver.handlers import HANDLERS, states
from lineserver.server import JsonRpcServer


@pytest.fixture(params=["asyncio", "trio"])
def anyio_backend(request):
    return request.param


@pytest.fixture
def serving():
    """Start a server on an ephemeral port for the duration of a block.

    Usage::

        async with serving() as (server, port):
            ...
    """

    @asynccontextmanager
    async def _serving(handlers=HANDLERS, handler_states=states, **options):
        config = ServerConfig(port=0, bind_address="127.0.0.1", handlers=handlers, **options)
        server = JsonRpcServer(config, handler_states)
        async with anyio.create_task_group() as tg:
            port = await tg.start(server.serve)
            yield server, port
            tg.cancel_scope.cancel()

    return _serving
