import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from frame0_communicator import DEFAULT_TIMEOUT, Frame0Communicator
from frame0_tools import create_server
from frame0_transport import WebSocketTransport

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_BRIDGE_URL = "ws://localhost:3000"
DEFAULT_RECONNECT_MAX = 30.0


@dataclass
class Frame0Config:
    bridge_url: str = DEFAULT_BRIDGE_URL
    command_timeout: float = DEFAULT_TIMEOUT
    reconnect_max: float = DEFAULT_RECONNECT_MAX
    log_level: str = "INFO"


def _parse_float(value: Optional[str], default: float, name: str) -> float:
    if value is None or value == "":
        return default
    try:
        parsed = float(value)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {value!r}; using {default}")
        return default
    if parsed <= 0:
        logger.warning(f"{name} must be positive, got {parsed}; using {default}")
        return default
    return parsed


def get_config(argv: Optional[List[str]] = None) -> Frame0Config:
    """Get configuration from environment variables or CLI args"""
    bridge_url = os.getenv("FRAME0_BRIDGE_URL", DEFAULT_BRIDGE_URL)
    timeout = os.getenv("FRAME0_COMMAND_TIMEOUT")
    reconnect_max = os.getenv("FRAME0_RECONNECT_MAX")
    log_level = os.getenv("LOG_LEVEL", "INFO")

    # Parse CLI args for overrides
    for arg in sys.argv[1:] if argv is None else argv:
        if arg.startswith("--bridge-url="):
            bridge_url = arg.split("=", 1)[1]
        elif arg.startswith("--timeout="):
            timeout = arg.split("=", 1)[1]
        elif arg.startswith("--reconnect-max="):
            reconnect_max = arg.split("=", 1)[1]
        elif arg.startswith("--log-level="):
            log_level = arg.split("=", 1)[1]

    return Frame0Config(
        bridge_url=bridge_url,
        command_timeout=_parse_float(timeout, DEFAULT_TIMEOUT, "command timeout"),
        reconnect_max=_parse_float(reconnect_max, DEFAULT_RECONNECT_MAX, "reconnect max"),
        log_level=log_level.upper(),
    )


def configure_logging(level: str) -> None:
    # stdout carries the MCP stdio protocol, so logs go to stderr
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='[%(asctime)s] [frame0] [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%S',
        stream=sys.stderr,
    )
    logging.getLogger("mcp.server").setLevel(logging.WARNING)


async def serve(config: Frame0Config) -> None:
    transport = WebSocketTransport(config.bridge_url, max_reconnect_delay=config.reconnect_max)
    communicator = Frame0Communicator(transport, timeout=config.command_timeout)
    mcp = create_server(communicator)

    connection_task = asyncio.create_task(transport.run_with_reconnect())
    try:
        await mcp.run_stdio_async()
    finally:
        logger.info("Shutting down Frame0 MCP server")
        await transport.close()
        connection_task.cancel()
        try:
            await connection_task
        except asyncio.CancelledError:
            pass
        communicator.cleanup_pending_requests()
        logger.info("Cleaned up pending commands")


def main() -> None:
    config = get_config()
    configure_logging(config.log_level)

    logger.info("Starting Frame0 MCP server")
    logger.info(f"Bridge URL: {config.bridge_url}")
    logger.info(f"Command timeout: {config.command_timeout}s")

    def signal_handler(signum, frame):
        logger.info("Received shutdown signal")
        raise KeyboardInterrupt

    signal.signal(signal.SIGTERM, signal_handler)

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Server interrupted")


if __name__ == "__main__":
    main()
