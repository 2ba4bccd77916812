#!/usr/bin/env python3
"""
Script to run the Amana Bookstore API server.
"""

import uvicorn

from api.config import config
from utilities.logger import get_logger, setup_logging


def main():
    """Run the API server."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        debug=config.debug
    )

    logger = get_logger(__name__)
    logger.info(
        "Starting Amana Bookstore API server",
        host=config.host,
        port=config.port,
        debug=config.debug,
        data_dir=config.data_dir
    )

    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        access_log=False
    )


if __name__ == "__main__":
    main()
