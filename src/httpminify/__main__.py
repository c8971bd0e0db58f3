"""
=============================================================================
CLI ENTRY POINT
=============================================================================

Serve a directory with compile/minify/cache applied:

    python -m httpminify ./public
    python -m httpminify ./public --port 3000 --cache-dir .minify-cache
    python -m httpminify ./public --stage-timeout 5 --log-level DEBUG

Settings not given on the command line come from the environment
(HTTP_HOST, HTTP_PORT, HTTPMINIFY_CACHE_DIR, ...), then the defaults.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import MinifyConfig, ServerConfig
from .handlers import StaticFileHandler
from .middleware import LoggingMiddleware, MinifyMiddleware
from .server import HTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpminify",
        description="Serve a directory, compiling and minifying scripts and stylesheets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpminify ./public                          # localhost:8080
  python -m httpminify ./public --host 0.0.0.0 -p 3000   # all interfaces
  python -m httpminify ./public --cache-dir .cache       # durable cache
        """,
    )

    parser.add_argument("root", help="Directory to serve")

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", default=None, help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None, help="Port to listen on (default: 8080)")
    parser.add_argument("--workers", "-w", type=int, default=None, help="Max worker threads (default: 16)")

    # ─────────────────────────────────────────────────────────────────────
    # MINIFY
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Directory for the durable output cache (default: in memory)",
    )
    parser.add_argument(
        "--stage-timeout",
        type=float,
        default=None,
        help="Seconds a single compile/minify step may take (default: no limit)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Access log format (default: text)",
    )

    parser.add_argument("--version", "-v", action="version", version=f"httpminify {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    server_config = ServerConfig.from_env()
    server_config.static_dir = args.root
    if args.host:
        server_config.host = args.host
    if args.port is not None:
        server_config.port = args.port
    if args.workers is not None:
        server_config.max_workers = args.workers
        server_config.min_workers = min(server_config.min_workers, args.workers)
    if args.log_level:
        server_config.log_level = args.log_level
    server_config.log_format = args.log_format

    minify_config = MinifyConfig.from_env()
    if args.cache_dir:
        minify_config.cache = args.cache_dir
    if args.stage_timeout is not None:
        minify_config.stage_timeout = args.stage_timeout

    try:
        handler = StaticFileHandler(args.root)
        server = HTTPServer(handler, server_config)
        minify = MinifyMiddleware(minify_config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    server.use(LoggingMiddleware(log_format=server_config.log_format))
    server.use(minify)

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        minify.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
