"""API key guard for the read-only stats endpoints."""
import os
import secrets
from typing import Annotated

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader


API_KEY_ENV = "TRAFFIC_API_KEY"
API_KEY_HEADER = "X-TRAFFIC-API-KEY"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


async def require_api_key(
    api_key: Annotated[str | None, Security(api_key_header)] = None
) -> str:
    """Reject requests whose X-TRAFFIC-API-KEY does not match TRAFFIC_API_KEY.

    Missing and wrong keys both get 401. An unset TRAFFIC_API_KEY is a
    deployment error, not a client error.
    """
    expected_key = os.getenv(API_KEY_ENV)
    if not expected_key:
        raise RuntimeError(f"{API_KEY_ENV} environment variable not configured")

    if not api_key or not secrets.compare_digest(api_key, expected_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "API-Key"},
        )

    return api_key
