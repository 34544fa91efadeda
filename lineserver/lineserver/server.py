"""TCP transport — one JSON-RPC 1.0 request per line.

``JsonRpcServer.serve`` binds the listener, starts the handler process
and the completion pump, then serves connections until cancelled::

    server = JsonRpcServer(ServerConfig(port=4700, handlers=HANDLERS), states)
    anyio.run(server.serve)
"""

from __future__ import annotations

import logging
import math
from typing import Mapping

import anyio
from anyio.abc import ByteStream, SocketAttribute, TaskStatus
from anyio.streams.memory import MemoryObjectReceiveStream

from lineserver.config import ServerConfig
from lineserver.dispatcher import Dispatcher, MethodRegistry
from lineserver.messages import Completion, Invoke
from lineserver.session import Reactor
from lineserver.worker import HandlerFn, HandlerProcess, HandlerTable

log = logging.getLogger(__name__)

_STREAM_GONE = (anyio.BrokenResourceError, anyio.ClosedResourceError, anyio.EndOfStream)


class JsonRpcServer:
    """Owns the listener, the reactor and the handler process.

    Parameters
    ----------
    config : ServerConfig
        Listener options and the method → handler reference table.
    states : HandlerTable | Mapping
        Named handler states that string references resolve to.
    """

    def __init__(
        self,
        config: ServerConfig,
        states: HandlerTable | Mapping[str, HandlerFn] | None = None,
    ) -> None:
        self.config = config
        self.states = states
        self.registry = MethodRegistry(config.handlers)
        self.reactor: Reactor | None = None
        self._limiter: anyio.CapacityLimiter | None = None

    # -- Lifecycle -----------------------------------------------------
    async def serve(
        self, *, task_status: TaskStatus[int] = anyio.TASK_STATUS_IGNORED
    ) -> None:
        """Serve until cancelled.  Reports the bound port to ``task_status``."""
        invoke_send, invoke_recv = anyio.create_memory_object_stream[Invoke](math.inf)
        done_send, done_recv = anyio.create_memory_object_stream[Completion](math.inf)
        self.reactor = Reactor(
            self.registry,
            Dispatcher(invoke_send),
            self.config.json_codec,
            legacy_falsy_ids=self.config.legacy_falsy_ids,
        )
        if self.config.concurrency is not None:
            self._limiter = anyio.CapacityLimiter(self.config.concurrency)
        process = HandlerProcess(done_send, self.states)

        listener = await anyio.create_tcp_listener(
            local_host=self.config.local_host,
            local_port=self.config.port,
            family=self.config.family,
        )
        async with listener, invoke_send, done_send, anyio.create_task_group() as tg:
            tg.start_soon(process.run, invoke_recv)
            tg.start_soon(self._pump_completions, done_recv)

            port = listener.extra(SocketAttribute.local_port)
            log.info(
                "listening on %s:%s (%d methods)",
                self.config.local_host or "*",
                port,
                len(self.registry),
            )
            task_status.started(port)
            await listener.serve(self._handle_client, task_group=tg)

    async def _pump_completions(self, completions: MemoryObjectReceiveStream[Completion]) -> None:
        async with completions:
            async for message in completions:
                self.reactor.complete(message)

    # -- Connections ---------------------------------------------------
    async def _handle_client(self, stream: ByteStream) -> None:
        if self._limiter is None:
            await self._serve_connection(stream)
        else:
            async with self._limiter:
                await self._serve_connection(stream)

    async def _serve_connection(self, stream: ByteStream) -> None:
        outbound_send, outbound_recv = anyio.create_memory_object_stream[str](math.inf)
        session = self.reactor.open(outbound_send)
        log.info("connection %s opened", session.id)

        async with stream, anyio.create_task_group() as tg:
            tg.start_soon(self._write_lines, session.id, stream, outbound_recv)
            try:
                async for line in self.config.input_framer.frame(stream):
                    self.reactor.on_line(session.id, line)
            except anyio.DelimiterNotFound as exc:
                log.warning("connection %s: line longer than %s bytes, closing", session.id, exc.args[0])
            except _STREAM_GONE:
                log.debug("connection %s: read side failed", session.id)
            finally:
                self.reactor.close(session.id)
                outbound_send.close()

        log.info("connection %s closed", session.id)

    async def _write_lines(
        self,
        connection_id: int,
        stream: ByteStream,
        lines: MemoryObjectReceiveStream[str],
    ) -> None:
        async with lines:
            try:
                async for line in lines:
                    await stream.send(self.config.output_framer.encode(line))
            except _STREAM_GONE:
                log.debug("connection %s: write side failed, discarding output", connection_id)
