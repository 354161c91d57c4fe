"""
AUTH.PY - API Authentication Utilities

Single source of truth for API authentication across all routers.
Write endpoints (capture, grade, detect, recalibrate) depend on it.

Usage:
    from core.auth import verify_api_key

    @router.post("/protected")
    async def protected_endpoint(auth: bool = Depends(verify_api_key)):
        return {"status": "ok"}

Configuration (env_config.Config):
    API_AUTH_ENABLED=true  require X-API-Key
    API_AUTH_KEY=...       expected key (auth stays off when unset)
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException

from env_config import Config

logger = logging.getLogger(__name__)


def auth_enabled() -> bool:
    if Config.API_AUTH_ENABLED and not Config.API_AUTH_KEY:
        logger.warning("API_AUTH_ENABLED is true but API_AUTH_KEY not set - auth disabled")
        return False
    return bool(Config.API_AUTH_ENABLED)


async def verify_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")):
    """
    Verify API key if authentication is enabled.

    Raises:
        HTTPException: 401 if missing key, 403 if invalid key
    """
    if not auth_enabled():
        return True

    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing X-API-Key header")

    if x_api_key != Config.API_AUTH_KEY:
        raise HTTPException(status_code=403, detail="Invalid API key")

    return True


__all__ = [
    'verify_api_key',
    'auth_enabled',
]
