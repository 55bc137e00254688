#!/usr/bin/env python3
"""CLI entrypoint for running the chat hub with Uvicorn."""

import argparse
import logging
import os

import uvicorn

from .config import get_settings

ASGI_APP_PATH = "chathub.app:asgi_app"


def _build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Group chat hub for humans and agents")
    parser.add_argument("--host", default=settings.server_host, help=f"Host to bind (default: {settings.server_host})")
    parser.add_argument(
        "--port", type=int, default=settings.server_port, help=f"Port to bind (default: {settings.server_port})"
    )
    parser.add_argument("--session", default=None, help="Resume an existing memory session by id")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    return parser


def main() -> None:
    args = _build_parser().parse_args()

    if args.session:
        # Read by Settings when the app module is imported (also by reload workers).
        os.environ["CHATHUB_SESSION_ID"] = args.session
        get_settings.cache_clear()

    # Socket.IO polling makes the access log very noisy
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("watchfiles.main").setLevel(logging.WARNING)

    if args.reload:
        target = ASGI_APP_PATH
    else:
        from .app import asgi_app as target

    uvicorn.run(
        target,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
        access_log=False,
    )


if __name__ == "__main__":  # pragma: no cover - CLI invocation guard
    main()
