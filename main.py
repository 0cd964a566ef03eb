"""
Intake scheduling service entry point.

Serves the HTTP API with uvicorn, or runs the offline console demo for
development.

Usage:
    HTTP API:     python main.py serve [--host 0.0.0.0] [--port 8000]
    Console mode: python main.py console
"""

import argparse
import logging
import sys

from intake_scheduling.config import settings

logger = logging.getLogger(__name__)


def _run_http_mode(argv: list[str]) -> None:
    """Start the HTTP API (interpretation requires OPENAI_API_KEY)."""
    import uvicorn

    from intake_scheduling.api import create_app

    parser = argparse.ArgumentParser(prog="main.py serve")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args(argv)

    logger.info("Starting %s on %s:%d", settings.service_name, args.host, args.port)
    uvicorn.run(create_app(), host=args.host, port=args.port, log_level=settings.log_level.lower())


def _run_console_mode(argv: list[str]) -> None:
    """Start the offline console demo (no API keys required)."""
    import console_demo

    sys.argv = ["console_demo.py", *argv]
    console_demo.main()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode(sys.argv[2:])
    else:
        _run_http_mode(sys.argv[2:] if len(sys.argv) > 1 and sys.argv[1] == "serve" else sys.argv[1:])
