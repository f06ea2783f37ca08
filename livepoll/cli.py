"""
LivePoll CLI - Command-line interface for the server.

Usage:
    livepoll serve [--host HOST] [--port PORT]    Run the API server
    livepoll code                                  Print a fresh session code
"""

import argparse
import os
import sys

from .logging_config import configure_logging


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="LivePoll - Real-time audience interaction server",
        prog="livepoll",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"), help="Bind address")
    serve_parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "3000")), help="Bind port")
    serve_parser.add_argument(
        "--log-level",
        default=os.getenv("LIVEPOLL_LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING...)",
    )

    # Code command
    subparsers.add_parser("code", help="Print a random session code")

    args = parser.parse_args(argv)

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "code":
        cmd_code(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args):
    """Run the API server with uvicorn."""
    import uvicorn
    from .api.app import create_app

    logger = configure_logging(args.log_level)
    logger.info("Starting LivePoll on http://%s:%d", args.host, args.port)

    uvicorn.run(
        create_app(log_level=args.log_level),
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


def cmd_code(args):
    """Print a session code (handy for load-test fixtures)."""
    from .session.codes import allocate_code

    print(allocate_code(set()))


if __name__ == "__main__":
    main()
