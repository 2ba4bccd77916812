"""
Logging system using structlog, plus the combined-format access log.
Provides structured application logging and one access line per HTTP request.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import structlog
from structlog.stdlib import LoggerFactory

ACCESS_LOGGER_NAME = "access"


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Union[str, Path]] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Enable debug mode for more verbose logging
    """

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Configure structlog processors
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # Set up file logging if specified
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        logging.getLogger().addHandler(file_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def setup_access_log(log_file: Union[str, Path]) -> logging.Logger:
    """
    Open the access log for appending, creating its directory if needed.

    Calling this again with the same path reuses the existing handler.

    Args:
        log_file: Access log file path

    Returns:
        Standard library logger that writes raw lines to the file
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.setLevel(logging.INFO)
    access_logger.propagate = False

    target = str(log_path.resolve())
    for handler in list(access_logger.handlers):
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return access_logger
        access_logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    access_logger.addHandler(file_handler)
    return access_logger


def format_combined_log(
    remote_addr: Optional[str],
    method: str,
    path: str,
    http_version: str,
    status_code: int,
    content_length: Optional[str],
    referrer: Optional[str],
    user_agent: Optional[str],
    timestamp: Optional[datetime] = None
) -> str:
    """
    Render one request in Apache combined log format.

    Example:
        127.0.0.1 - - [15/Jan/2024:10:30:00 +0000] "GET /api/books HTTP/1.1" 200 512 "-" "curl/8.0"
    """
    timestamp = timestamp or datetime.now().astimezone()
    return '{addr} - - [{time}] "{method} {path} HTTP/{version}" {status} {length} "{referrer}" "{agent}"'.format(
        addr=remote_addr or "-",
        time=timestamp.strftime("%d/%b/%Y:%H:%M:%S %z"),
        method=method,
        path=path,
        version=http_version,
        status=status_code,
        length=content_length or "-",
        referrer=referrer or "-",
        agent=user_agent or "-",
    )
