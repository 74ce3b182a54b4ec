# src/playground_api/server.py
import argparse
import logging
import logging.handlers
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import uvicorn

from playground_api.api import app, init_app_state
from playground_api.settings import PlaygroundSettings

# Try to use uvloop for better async performance
try:
    import uvloop
    import asyncio
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    HAS_UVLOOP = True
except ImportError:
    HAS_UVLOOP = False

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Playground API server for a local Ollama backend")
    parser.add_argument("--host", default="127.0.0.1", help="Host to run the server on")
    parser.add_argument("--port", type=int, default=8080, help="Port to run the server on")
    parser.add_argument("--log-level", default="INFO", choices=LOG_LEVELS,
                        help="Console logging level")
    parser.add_argument("--file-log-level", default=None, choices=LOG_LEVELS,
                        help="File logging level (if not set, file logging is disabled)")
    parser.add_argument("--log-dir", default="logs", help="Directory for log files (default: logs)")
    parser.add_argument("--log-rotate-mb", type=int, default=100,
                        help="Max size in MB per log file before rotation (default: 100)")
    parser.add_argument("--log-rotate-count", type=int, default=10,
                        help="Number of rotated log files to keep (default: 10)")
    parser.add_argument("--ollama-host", default=None,
                        help="Ollama base URL (overrides OLLAMA_HOST, default: http://localhost:11434)")
    return parser


def setup_logging(args: argparse.Namespace) -> Optional[Path]:
    """Console handler always, rotating file handler when --file-log-level is set.

    Returns the log file path, if any.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Set to lowest level, handlers will filter
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, args.log_level.upper()))
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    root_logger.addHandler(console_handler)

    if not args.file_log_level:
        logging.info("File logging disabled (use --file-log-level to enable)")
        return None

    log_dir = Path(args.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"playgroundapi_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=args.log_rotate_mb * 1024 * 1024,  # Convert MB to bytes
        backupCount=args.log_rotate_count
    )
    file_handler.setLevel(getattr(logging, args.file_log_level.upper()))
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    root_logger.addHandler(file_handler)

    logging.info(f"File logging enabled: {log_file} (level: {args.file_log_level})")
    return log_file


def main(argv: Optional[List[str]] = None):
    """
    Entry point for the playgroundapi command.
    Parses arguments, sets up logging and app state, and runs uvicorn.
    """
    args = build_parser().parse_args(argv)
    setup_logging(args)

    if HAS_UVLOOP:
        logging.info("Using uvloop for improved async performance")
    else:
        logging.info("uvloop not available - using standard asyncio event loop")

    overrides = {}
    if args.ollama_host:
        overrides["ollama_host"] = args.ollama_host.rstrip("/")
    settings = PlaygroundSettings(**overrides)
    init_app_state(app, settings)

    print(f"Starting Playground API on {args.host}:{args.port}")
    print(f"Ollama backend: {settings.ollama_host}")

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower()
    )


if __name__ == "__main__":
    main()
