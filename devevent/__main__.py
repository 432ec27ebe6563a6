"""Main entry point for DevEvent."""

import argparse
import asyncio
import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

from devevent.database.connections import cleanup_connection_cache, initialize_connection_cache
from devevent.database.schema import create_schema
from devevent.exceptions import DevEventError
from devevent.models.config import DevEventConfig

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

# Reduce verbosity for third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def init_db(config: DevEventConfig) -> None:
    """Create the events and bookings tables."""
    cache = initialize_connection_cache(config)
    try:
        await create_schema(cache)
    finally:
        await cleanup_connection_cache()


def serve(config: DevEventConfig, reload: bool = False) -> None:
    """Run the HTTP server."""
    logger.info(f"Starting HTTP server on {config.http_host}:{config.http_port}")
    uvicorn.run(
        "devevent.http_server:app",
        host=config.http_host,
        port=config.http_port,
        reload=reload,
        log_level=log_level.lower(),
    )


def main() -> None:
    """Parse command line arguments and dispatch."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="DevEvent - event listings and bookings")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    subparsers.add_parser("init-db", help="Create database tables")

    args = parser.parse_args()
    config = DevEventConfig()

    if args.command == "init-db":
        try:
            asyncio.run(init_db(config))
        except DevEventError as e:
            logger.error(f"Database initialization failed: {e.message}")
            sys.exit(1)
        logger.info("Database initialized")
    elif args.command == "serve" or args.command is None:
        if not config.database_url:
            logger.error("DATABASE_URL environment variable is required")
            sys.exit(1)
        serve(config, reload=getattr(args, "reload", False))


if __name__ == "__main__":
    main()
