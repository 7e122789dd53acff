"""Application entry point for the GreenMind quiz API."""

from __future__ import annotations

import argparse
from pathlib import Path

from greenmind.constants.about import APP_NAME, APP_VERSION
from greenmind.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from greenmind.core.services.result_recorder import (
    InMemoryResultRecorder,
    JsonLinesResultRecorder,
    ResultRecorder,
)
from greenmind.server.api_server import run_api_server
from greenmind.utils.logging_config import configure_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"{APP_NAME} API server")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument(
        "--data-file",
        type=Path,
        default=None,
        help="JSON-lines file for recorded results (kept in memory when omitted)",
    )
    return parser.parse_args(argv)


def build_recorder(data_file: Path | None) -> ResultRecorder:
    if data_file is None:
        return InMemoryResultRecorder()
    return JsonLinesResultRecorder(data_file)


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, choose a result store and serve the API."""
    args = _parse_args(argv)
    logger = configure_logging()
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    recorder = build_recorder(args.data_file)
    if args.data_file is not None:
        logger.info("Recording results to %s", args.data_file)
    logger.info("API available at http://%s:%d/", args.host, args.port)
    run_api_server(recorder, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
