"""Main application entry point for the call bridge."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import structlog

from callbridge import __version__
from callbridge.config import Config, config
from callbridge.server import run_server


def setup_logging(cfg: Config) -> Optional[Path]:
    """Configure structured logging with optional file output.

    Args:
        cfg: Process configuration

    Returns:
        Path of the log file, if file logging is enabled
    """
    log_level = getattr(logging, cfg.system.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file: Optional[Path] = None
    if cfg.system.log_dir:
        log_dir = Path(cfg.system.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"callbridge_{timestamp}.log"
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=handlers,
        force=True
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if cfg.system.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if log_file:
        structlog.get_logger(__name__).info("Logging to file", log_file=str(log_file))
    return log_file


async def main(cfg: Config) -> None:
    """Start the listener and bridge calls until shutdown."""
    logger = structlog.get_logger(__name__)
    logger.info(
        "Call bridge starting",
        version=__version__,
        call_encoding=cfg.audio.call_encoding,
        ai_encoding=cfg.audio.ai_encoding
    )
    await run_server(cfg)


def cli() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Call bridge: pairs telephony media streams with realtime AI sessions"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--host", help="Listen address (overrides SERVER_HOST)")
    parser.add_argument("--port", type=int, help="Listen port (overrides PORT)")
    args = parser.parse_args()

    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port

    # Setup logging BEFORE anything else
    setup_logging(config)
    logger = structlog.get_logger(__name__)

    try:
        asyncio.run(main(config))
    except KeyboardInterrupt:
        logger.info("Shutdown complete")
        sys.exit(0)
    except Exception as e:
        logger.error("Fatal error", error=str(e), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
