"""Byte stream ↔ line framing."""

from __future__ import annotations

from typing import AsyncIterator, Protocol

import anyio
from anyio.abc import ByteReceiveStream
from anyio.streams.buffered import BufferedByteReceiveStream

DEFAULT_MAX_LINE_BYTES = 65536


class LineFramer(Protocol):
    """Splits inbound bytes into lines and frames outbound lines."""

    def frame(self, stream: ByteReceiveStream) -> AsyncIterator[bytes]: ...

    def encode(self, line: str) -> bytes: ...


class NewlineFramer:
    """One line per delimiter; a trailing ``\\r`` is dropped.

    A final unterminated line is still delivered at EOF.  A line longer
    than *max_line_bytes* raises ``anyio.DelimiterNotFound``.

    *encoding* applies to outbound lines only.  Inbound lines are handed
    over as bytes and the JSON codec detects UTF-8, UTF-16 or UTF-32.
    """

    def __init__(
        self,
        delimiter: bytes = b"\n",
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        encoding: str = "utf-8",
    ) -> None:
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self.delimiter = delimiter
        self.max_line_bytes = max_line_bytes
        self.encoding = encoding

    async def frame(self, stream: ByteReceiveStream) -> AsyncIterator[bytes]:
        buffered = BufferedByteReceiveStream(stream)
        while True:
            try:
                line = await buffered.receive_until(self.delimiter, self.max_line_bytes)
            except anyio.IncompleteRead:
                tail = bytes(buffered.buffer)
                if tail.strip():
                    yield tail.rstrip(b"\r")
                return
            yield line.rstrip(b"\r")

    def encode(self, line: str) -> bytes:
        return line.encode(self.encoding) + self.delimiter
