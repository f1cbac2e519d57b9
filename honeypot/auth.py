"""Shared-secret check on the ``x-api-key`` header of every /honeypot call."""

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from honeypot.config import load_settings

api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def verify_api_key(api_key: str = Security(api_key_header)) -> str:
    if not api_key:
        raise _unauthorized("x-api-key header is required")
    # Settings are re-read per call, so rotating API_KEY needs no restart
    if api_key != load_settings().api_key:
        raise _unauthorized("x-api-key not recognised")
    return api_key
