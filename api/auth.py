"""
API key authentication for the write endpoints.
"""

from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

logger = structlog.get_logger(__name__)

API_KEY_HEADER = "x-api-key"

# Security scheme
api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


async def verify_api_key(
    request: Request,
    api_key: Optional[str] = Depends(api_key_header)
) -> str:
    """
    Verify the x-api-key header against the configured keys.

    Args:
        request: Incoming request, used to reach the application config
        api_key: Value of the x-api-key header, if any

    Returns:
        API key if valid

    Raises:
        HTTPException: 500 if the server has no keys configured, 401 if the key is missing or unknown
    """
    valid_api_keys = request.app.state.config.get_api_keys()

    if not valid_api_keys:
        logger.error("No API keys configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="No API keys configured."
        )

    if not api_key or api_key not in valid_api_keys:
        logger.warning(
            "Invalid API key attempted",
            api_key=api_key[:10] + "..." if api_key else None,
            path=request.url.path
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: valid API key required."
        )

    return api_key
