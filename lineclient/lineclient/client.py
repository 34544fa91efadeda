"""Line client — thin JSON-RPC 1.0 consumer over TCP.

* ``call(method, *params)`` → result, or ``RpcError``
* ``send_line(text)``       → raw response envelope as a dict

One request is in flight at a time; the server keeps a single pending
id per connection.  **Never** imports from ``lineserver``.

Run directly for a quick demo against a local server::

    python -m lineclient.client
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

import anyio
from anyio.abc import SocketStream
from anyio.streams.buffered import BufferedByteReceiveStream
from lineproto.jsonrpc import JsonCodec, JsonRpcRequest, ResponseEnvelope
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

log = logging.getLogger(__name__)

MAX_RESPONSE_BYTES = 16 * 1024 * 1024


class RpcError(Exception):
    """Raised when the server answers with an error envelope."""

    def __init__(self, envelope: ResponseEnvelope) -> None:
        self.envelope = envelope
        super().__init__(envelope.error)

    @property
    def message(self) -> str:
        return self.envelope.error


class ProtocolError(Exception):
    """Raised when a response does not answer the request just sent."""


class LineRpcClient:
    """Async client for the line-framed JSON-RPC server.

    Parameters
    ----------
    host : str
        Server host name or address.
    port : int
        Server port.
    timeout : float
        Seconds to wait for each response line.
    max_retries : int
        Connection attempts before giving up.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 4700,
        timeout: float = 30.0,
        max_retries: int = 3,
        codec: JsonCodec | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.max_retries = max_retries
        self._codec = codec or JsonCodec()
        self._ids = itertools.count(1)
        self._lock = anyio.Lock()
        self._stream: SocketStream | None = None
        self._reader: BufferedByteReceiveStream | None = None

    # -- Lifecycle -----------------------------------------------------

    async def connect(self) -> None:
        async for attempt in self._get_retrier():
            with attempt:
                self._stream = await anyio.connect_tcp(self.host, self.port)
        self._reader = BufferedByteReceiveStream(self._stream)
        log.debug("connected to %s:%s", self.host, self.port)

    async def close(self) -> None:
        if self._stream is not None:
            await self._stream.aclose()
            self._stream = None
            self._reader = None

    async def __aenter__(self) -> "LineRpcClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # -- Internal retry helper -----------------------------------------

    def _get_retrier(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, max=10),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )

    # -- RPC -----------------------------------------------------------

    async def call(self, method: str, *params: Any) -> Any:
        """Send one request and return its result.

        Raises ``RpcError`` if the server reports an error and
        ``ProtocolError`` if a result carries another request's id.
        Error envelopes are not id-checked: the server answers protocol
        errors with the id of the previous request.
        """
        req = JsonRpcRequest(method=method, params=list(params), id=next(self._ids))
        log.debug("rpc → %s(id=%s)", method, req.id)

        raw = await self.send_line(self._codec.dump(req.to_dict()))
        envelope = ResponseEnvelope.from_dict(raw)
        if not envelope.ok:
            raise RpcError(envelope)
        if envelope.id != req.id:
            raise ProtocolError(f"response id {envelope.id!r} does not match request id {req.id!r}")
        return envelope.result

    async def send_line(self, text: str) -> dict[str, Any]:
        """Send *text* as one line and return the decoded response line.

        On timeout the connection is closed, since a late response would
        otherwise be read as the answer to the next request.  Call
        ``connect()`` again to reuse the client.
        """
        async with self._lock:
            if self._stream is None:
                raise RuntimeError("client is not connected")
            await self._stream.send(text.encode("utf-8") + b"\n")
            try:
                with anyio.fail_after(self.timeout):
                    line = await self._reader.receive_until(b"\n", MAX_RESPONSE_BYTES)
            except TimeoutError:
                log.warning("no response within %ss, closing connection", self.timeout)
                await self.close()
                raise
        return self._codec.load(line)


# ── Demo entrypoint ──────────────────────────────────────────────────


async def _demo() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    async with LineRpcClient() as client:
        print("── echo ──")
        result = await client.call("echo", "foo", "bar")
        print(f"  result: {result}")

        print("── sum ──")
        result = await client.call("sum", 2, 3)
        print(f"  result: {result}")

        print("── unknown method ──")
        try:
            await client.call("nope")
        except RpcError as exc:
            print(f"  error: {exc.message}")

        print("── done ──")


if __name__ == "__main__":
    anyio.run(_demo)
