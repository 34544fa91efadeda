"""Construction-time server options."""

from __future__ import annotations

import socket
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from lineproto.jsonrpc import JsonCodec
from lineserver.framing import LineFramer, NewlineFramer
from lineserver.messages import HandlerRef

ADDRESS_FAMILIES = {
    "inet": socket.AF_INET,
    "inet6": socket.AF_INET6,
    "unspec": socket.AF_UNSPEC,
}


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Immutable server options.

    ``handlers`` maps method names to handler references.  ``bind_address``
    wins over ``hostname`` when both are set; with neither the listener
    binds every local interface.  ``concurrency`` caps how many
    connections are served at once (``None`` means no cap).
    """

    port: int
    handlers: Mapping[str, HandlerRef] = field(default_factory=dict)
    bind_address: str | None = None
    hostname: str | None = None
    address_family: str | None = None
    concurrency: int | None = None
    input_framer: LineFramer = field(default_factory=NewlineFramer)
    output_framer: LineFramer = field(default_factory=NewlineFramer)
    json_codec: JsonCodec = field(default_factory=JsonCodec)
    legacy_falsy_ids: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")
        if self.address_family is not None and self.address_family not in ADDRESS_FAMILIES:
            raise ValueError(
                f"unknown address family {self.address_family!r}, "
                f"expected one of {sorted(ADDRESS_FAMILIES)}"
            )
        if self.concurrency is not None and self.concurrency < 1:
            raise ValueError("concurrency must be a positive integer")
        object.__setattr__(self, "handlers", MappingProxyType(dict(self.handlers)))

    @property
    def local_host(self) -> str | None:
        return self.bind_address or self.hostname

    @property
    def family(self) -> socket.AddressFamily:
        return ADDRESS_FAMILIES[self.address_family or "unspec"]
