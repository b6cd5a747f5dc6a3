#!/usr/bin/env python3
"""Run the card workbench API under uvicorn."""

from __future__ import annotations

import argparse
import sys
import threading
import webbrowser
from pathlib import Path

import uvicorn

BACKEND_DIR = Path(__file__).resolve().parent / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from settings import Settings  # noqa: E402


def main() -> int:
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(description="Run the card workbench API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=settings.backend_port)
    parser.add_argument("--reload", action="store_true", help="Restart on source changes")
    parser.add_argument("--no-browser", action="store_true", help="Do not open the API docs in a browser")
    args = parser.parse_args()

    if not args.no_browser:
        threading.Timer(1.5, webbrowser.open, args=(f"http://{args.host}:{args.port}/docs",)).start()
    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        app_dir=str(BACKEND_DIR),
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
