#!/usr/bin/env python3
"""Run the TaskDesk API with uvicorn.  Settings default to the APP_* env vars."""

from __future__ import annotations

import argparse
import os
from pathlib import Path

import uvicorn


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the TaskDesk API server.")
    parser.add_argument("--host", default=os.getenv("APP_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("APP_PORT", "8000")))
    parser.add_argument("--db", type=Path, default=None,
                        help="SQLite file, created with the schema if missing")
    parser.add_argument("--reload", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    # create_app() reads the path from the environment, also in reload workers.
    if args.db is not None:
        os.environ["APP_DB_PATH"] = str(args.db)
    uvicorn.run("api.app:app", host=args.host, port=args.port,
                reload=args.reload, log_level="info")


if __name__ == "__main__":
    main()
