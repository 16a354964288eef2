"""Request authentication.

Session issuance lives in the frontend; this service trusts the user id
forwarded in X-User-ID once the shared X-API-Key has been verified.
"""

import hmac
from typing import Optional
from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from app.infra.config import config

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
user_id_header = APIKeyHeader(name="X-User-ID", auto_error=False)


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> None:
    """
    Verify the shared API key when one is configured.

    Raises:
        HTTPException: If API key is configured and missing or wrong
    """
    if not config.APP_API_KEY:
        return

    if not api_key or not hmac.compare_digest(api_key, config.APP_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )


async def get_current_user_id(
    api_key: Optional[str] = Security(api_key_header),
    user_id: Optional[str] = Security(user_id_header),
) -> str:
    """
    Resolve the authenticated user id for the request.

    Returns:
        The user id

    Raises:
        HTTPException: If the API key is invalid or no user id is present
    """
    await verify_api_key(api_key)

    if not user_id or not user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User identity required. Provide X-User-ID header.",
        )
    return user_id.strip()
