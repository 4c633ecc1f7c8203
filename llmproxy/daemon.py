import argparse
import logging
import os
import sys
from typing import List, Optional

from .config import Settings
from .server import create_app


logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(levelname)s] %(message)s"


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="llmproxyd", description="Model-routing reverse proxy for LLM servers")
    parser.add_argument("--host", type=str, default=None, help="Listen host (default: $LLMPROXY_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (default: $LLMPROXY_PORT or 11450)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More log output (-v debug)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    return parser.parse_args(argv)


def resolve_log_level(level: str, verbose: int = 0, quiet: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: str, verbose: int = 0, quiet: bool = False) -> None:
    logging.basicConfig(level=resolve_log_level(level, verbose, quiet), format=LOG_FORMAT, stream=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    settings = Settings.from_env()
    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port
    configure_logging(settings.log_level, args.verbose, args.quiet)

    app = create_app(settings)
    logger.info("Listening on %s:%s", settings.host, settings.port)
    debug = os.getenv("FLASK_DEBUG", "0") == "1"
    # threaded=True to handle each request on its own thread
    app.run(host=settings.host, port=settings.port, threaded=True, debug=debug, use_reloader=False)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
