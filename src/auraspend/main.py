"""
AuraSpend entry point.

Parses the command line, prepares the data directory and logging, then starts the REST API, or the
API in a background thread with the interactive CLI in the foreground.
"""

import argparse
import logging
import os
import sys
import threading
from pathlib import Path

from auraspend.api.app import run_api
from auraspend.config import settings

logger = logging.getLogger(__name__)

_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "anthropic")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _ensure_data_dir(path: str) -> bool:
    """Create the transcript directory if needed; False if it cannot be written to."""
    data_dir = Path(path)
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir.is_dir() and os.access(data_dir, os.W_OK)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the AuraSpend finance assistant")
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="api",
        help="Serve the REST API only, or the API plus an interactive shell (default: api)",
    )
    parser.add_argument(
        "--client",
        choices=["openai", "anthropic", "http"],
        type=str.lower,
        default=None,
        help="Chat model back-end (default from env: CHAT_CLIENT)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    return parser


def _run_shell() -> None:
    from auraspend.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    # uvicorn's reloader needs the main thread, so the background server runs without it
    server = threading.Thread(
        target=run_api,
        kwargs={"host": "0.0.0.0", "port": settings.API_PORT, "log_level": "warning"},
        daemon=True,
    )
    server.start()
    run_cli()


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """Console-script entry point (``auraspend``)."""
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)

    settings.LOG_LEVEL = args.log_level
    if args.client:
        settings.CHAT_CLIENT = args.client
    _init_logging(settings.LOG_LEVEL)

    if not _ensure_data_dir(settings.DATA_DIR):
        logger.error("Data directory is not writable: %s", settings.DATA_DIR)
        sys.exit(1)

    logger.info("Starting AuraSpend [%s mode, %s client]", args.mode, settings.CHAT_CLIENT)
    logger.debug("Settings: %s", settings.model_dump())

    if args.mode == "cli":
        _run_shell()
    else:
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)


if __name__ == "__main__":
    main()
