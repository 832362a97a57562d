#!/usr/bin/env python3
"""
User Directory -- registration, login with lockout, and a searchable user list.

Usage:
  python main.py
  python main.py --port 8080
  python main.py --host 0.0.0.0 --port 3000
  python main.py --reload

Environment variables (see core/config.py for the full list):
  DATABASE_URL  SQLAlchemy URL of the user database. Defaults to a SQLite file
                next to auth/store.py.
  PORT          Listening port when --port is not given. Defaults to 3000.
  UPLOAD_DIR    Where profile pictures are written (served at /uploads/).
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Run the User Directory web server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Example: python main.py --host 0.0.0.0 --port 8080",
    )
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Listening port (default: {settings.port})")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only).")
    args = parser.parse_args()

    print(f"  Server running on http://{args.host}:{args.port}")
    uvicorn.run(
        "asgi:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
