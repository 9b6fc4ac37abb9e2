"""
CLI entrypoint for the FastAPI server.

Usage:
  ecosort-api --host 0.0.0.0 --port 8000 --db data/ecosort.db
"""

from __future__ import annotations

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run the EcoSort API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--db", help="SQLite database path (overrides ECOSORT_DB_PATH)")
    parser.add_argument("--log-level", choices=["debug", "info", "warning", "error"], default=None)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    args = parser.parse_args(argv)

    # The factory reads settings in the server process, so pass choices via env
    if args.db:
        os.environ["ECOSORT_DB_PATH"] = args.db
    if args.log_level:
        os.environ["LOG_LEVEL"] = args.log_level.upper()

    import uvicorn

    uvicorn.run(
        "ecosort.api:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level or "info",
    )


if __name__ == "__main__":
    main()
