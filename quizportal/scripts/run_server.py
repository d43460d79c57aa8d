#!/usr/bin/env python3
"""
Portal server runner.

Starts the API under uvicorn. With --init-db the SQL schema is created
first and the script exits, which lets deployments prepare the database
before the first worker boots.
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional

import uvicorn

from quizportal.common.logger import app_logger
from quizportal.config import get_settings
from quizportal.database.session import close_database, initialize_database

logger = app_logger.getChild("scripts.run_server")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the quiz portal API")
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", 8000)))
    parser.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() == "true",
        help="Restart on code changes (development only)",
    )
    parser.add_argument("--init-db", action="store_true", help="Create the database schema and exit")
    return parser.parse_args(argv)


async def init_db() -> None:
    settings = get_settings()
    await initialize_database(settings.DATABASE_URL, echo=settings.SQL_ECHO, create_tables=True)
    await close_database()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    if args.init_db:
        try:
            asyncio.run(init_db())
        except Exception as e:
            logger.error(f"Schema initialization failed: {e}")
            return 1
        return 0

    logger.info(f"Starting server on {args.host}:{args.port} (reload: {args.reload})")
    uvicorn.run(
        "quizportal.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=get_settings().LOG_LEVEL.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
