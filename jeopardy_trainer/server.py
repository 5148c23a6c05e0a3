#!/usr/bin/env python3
"""
Jeopardy Trainer - API server launcher

1. loads settings and configures logging
2. opens the database (creating tables)
3. serves the FastAPI app with uvicorn
"""

import argparse
import sys

import uvicorn

from jeopardy_trainer.core.services.database import init_db_service
from jeopardy_trainer.core.services.logging import get_logging_service
from jeopardy_trainer.core.services.settings_config_service import (
    get_settings_service,
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the Jeopardy Trainer API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    settings = get_settings_service()
    logger = get_logging_service().get_logger("server")

    init_db_service(settings.get_database_url())
    logger.info(
        "server.starting",
        host=args.host,
        port=args.port,
        config_file=settings.config_file,
    )
    print(f"Jeopardy Trainer starting on http://{args.host}:{args.port}")

    uvicorn.run(
        "jeopardy_trainer.api.main:app",
        host=args.host,
        port=args.port,
        log_level="info",
        reload=args.reload,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
