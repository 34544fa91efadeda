"""Run the example line JSON-RPC server.

    python -m lineserver --port 4700
"""

import argparse
import logging
import os
from pathlib import Path

import anyio
from dotenv import load_dotenv

from lineserver.config import ADDRESS_FAMILIES, ServerConfig
from lineserver.handlers import HANDLERS, states
from lineserver.server import JsonRpcServer

load_dotenv(os.path.join(Path.cwd(), ".env"))


def _optional_int(value):
    return int(value) if value else None


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Line-framed JSON-RPC 1.0 server")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("LINERPC_PORT", "4700")),
        help="TCP port to listen on",
    )
    parser.add_argument(
        "--bind",
        type=str,
        default=os.getenv("LINERPC_BIND"),
        help="Address to bind (default: all interfaces)",
    )
    parser.add_argument(
        "--family",
        choices=sorted(ADDRESS_FAMILIES),
        default=os.getenv("LINERPC_FAMILY"),
        help="Address family for the listener",
    )
    parser.add_argument(
        "--concurrency",
        type=_optional_int,
        default=_optional_int(os.getenv("LINERPC_CONCURRENCY")),
        help="Maximum connections served at once",
    )
    parser.add_argument(
        "--legacy-falsy-ids",
        action="store_true",
        help="Echo 0, \"\", \"0\" and false request ids as null",
    )
    parser.add_argument(
        "--backend",
        choices=["asyncio", "trio"],
        default=os.getenv("LINERPC_BACKEND", "asyncio"),
        help="Event loop backend",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger("lineserver-main")

    config = ServerConfig(
        port=args.port,
        handlers=HANDLERS,
        bind_address=args.bind,
        address_family=args.family,
        concurrency=args.concurrency,
        legacy_falsy_ids=args.legacy_falsy_ids,
    )
    server = JsonRpcServer(config, states)
    logger.info("Starting line JSON-RPC server on port %s (%s)", args.port, args.backend)

    try:
        anyio.run(server.serve, backend=args.backend)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
