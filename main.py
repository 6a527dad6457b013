#!/usr/bin/env python3
"""
Location Tracker -- share your latest GPS position with approved viewers.

Usage:
  python main.py
  python main.py --port 9000
  python main.py --host 127.0.0.1 --reload

Environment variables (or .env):
  SECRET_KEY    Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL  SQLAlchemy URL. Defaults to tracker.db beside the code.
  SMTP_*        Mail relay used to deliver passcodes.
  PORT          Listening port when --port is not given (default 8080).
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Run the location tracker API server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Port (default: {settings.port})")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    if not 0 < args.port < 65536:
        parser.error(f"--port must be between 1 and 65535, got {args.port}")

    print(f"  Server running at http://{args.host}:{args.port}")
    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
