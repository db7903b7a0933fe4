"""
Command-line interface for the quote generation service.

Provides commands for running the HTTP service.
"""

import argparse
import logging
import sys
from typing import List, Optional

import structlog
import uvicorn

from quotegen import __version__
from quotegen.config import AppConfig, set_config


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stdout,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="quotegen",
        description="Quote generation service",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument(
        "--host",
        help="Interface to bind (default: QUOTEGEN_APP_HOST or 0.0.0.0)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        help="Port to listen on (default: QUOTEGEN_APP_PORT or 8080)",
    )
    serve_parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: QUOTEGEN_LOG_LEVEL or INFO)",
    )
    serve_parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Output logs in JSON format",
    )

    return parser


def build_config(args: argparse.Namespace) -> AppConfig:
    """Build configuration from the environment, overridden by command-line flags."""
    overrides = {
        "app_host": args.host,
        "app_port": args.port,
        "log_level": args.log_level,
        "log_json": args.log_json,
    }
    return AppConfig(**{k: v for k, v in overrides.items() if v is not None})


def serve(config: AppConfig) -> None:
    """Run the HTTP service until interrupted."""
    from quotegen.api.app import create_app

    app = create_app(config)
    uvicorn.run(
        app,
        host=config.app_host,
        port=config.app_port,
        log_config=None,
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = build_config(args)
    set_config(config)
    setup_logging(config.log_level, config.log_json)

    if args.command == "serve":
        serve(config)


if __name__ == "__main__":
    main()
