"""Bearer API-key check for calls coming from the auth gateway

End users never hold these keys. The gateway authenticates the player, then
calls Impulse with a shared service key and the player's id in the path.
"""
import hmac
import logging
import os

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_api_keys() -> list[str]:
    """Service keys accepted by the API, from API_KEYS (comma separated)

    Read per request so keys can be rotated by changing the environment.
    """
    return [key.strip() for key in os.getenv("API_KEYS", "").split(",") if key.strip()]


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """
    Admit the request if its bearer token is one of the service keys

    Raises:
        HTTPException: 503 while no service key is configured, 401 for an unknown key
    """
    presented = credentials.credentials
    service_keys = get_api_keys()

    if not service_keys:
        logger.error("API_KEYS is empty, Impulse API is closed to all callers")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API authentication not configured"
        )

    if not any(hmac.compare_digest(presented, key) for key in service_keys):
        logger.warning("Rejected call with unknown service key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )

    return presented
