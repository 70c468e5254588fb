"""
JWT validation middleware for AWS Cognito access tokens.

Users are provisioned outside this service; a valid token whose subject has
no matching user row is rejected. Role guards sit on top of
get_current_user.

Usage:
    @router.post("/availability")
    def create_window(current_user: User = Depends(require_tutor)):
        return {"tutor_id": current_user.id}
"""

import logging
import time
from typing import Optional
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
import httpx

from config import get_settings
from auth.repositories.user_repository import UserRepository
from database import get_db
from shared.models.entities import User
from sqlalchemy.orm import Session as DBSession

logger = logging.getLogger("auth.middleware")

security = HTTPBearer(auto_error=False)

# JWKS cache with TTL
_jwks_cache: Optional[dict] = None
_jwks_fetched_at: float = 0
JWKS_TTL_SECONDS = 3600  # Re-fetch keys every hour


async def _get_jwks(force_refresh: bool = False) -> dict:
    """
    Fetch and cache Cognito JWKS (JSON Web Key Set).

    Serves from cache within the TTL; force_refresh bypasses it when a
    token's kid is unknown, which usually means the keys rotated.
    """
    global _jwks_cache, _jwks_fetched_at
    now = time.time()

    if _jwks_cache and not force_refresh and (now - _jwks_fetched_at < JWKS_TTL_SECONDS):
        return _jwks_cache

    settings = get_settings()
    jwks_url = (
        f"https://cognito-idp.{settings.cognito_region}.amazonaws.com/"
        f"{settings.cognito_user_pool_id}/.well-known/jwks.json"
    )

    async with httpx.AsyncClient() as client:
        response = await client.get(jwks_url)
        _jwks_cache = response.json()
        _jwks_fetched_at = now

    logger.info("JWKS cache refreshed")
    return _jwks_cache


def _find_key(jwks: dict, kid: Optional[str]) -> Optional[dict]:
    for k in jwks.get("keys", []):
        if k["kid"] == kid:
            return k
    return None


async def _verify_access_token(token: str) -> dict:
    """Verify a Cognito access token and return its claims."""
    settings = get_settings()

    if not settings.cognito_user_pool_id:
        raise HTTPException(status_code=401, detail="Authentication not configured")

    header = jwt.get_unverified_header(token)
    kid = header.get("kid")

    key = _find_key(await _get_jwks(), kid)
    if not key:
        logger.warning(f"kid '{kid}' not found in JWKS cache, refreshing...")
        key = _find_key(await _get_jwks(force_refresh=True), kid)

    if not key:
        raise HTTPException(status_code=401, detail="Invalid token: key not found after refresh")

    issuer = (
        f"https://cognito-idp.{settings.cognito_region}.amazonaws.com/"
        f"{settings.cognito_user_pool_id}"
    )

    try:
        # Access tokens carry client_id instead of aud
        claims = jwt.decode(
            token, key, algorithms=["RS256"],
            issuer=issuer,
            options={"verify_aud": False},
        )
    except JWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")

    if claims.get("client_id") != settings.cognito_app_client_id:
        raise HTTPException(status_code=401, detail="Invalid token: wrong client_id")

    actual_token_use = claims.get("token_use")
    if actual_token_use != "access":
        raise HTTPException(
            status_code=401,
            detail=f"Invalid token: expected token_use='access', got '{actual_token_use}'"
        )

    return claims


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: DBSession = Depends(get_db),
) -> User:
    """
    FastAPI dependency: extract and validate access token, return User from DB.
    Raises 401 if token is missing or invalid.
    """
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    claims = await _verify_access_token(credentials.credentials)
    cognito_sub = claims.get("sub")

    if not cognito_sub:
        raise HTTPException(status_code=401, detail="Invalid token: no sub claim")

    user = UserRepository(db).get_by_cognito_sub(cognito_sub)
    if not user:
        raise HTTPException(status_code=403, detail="User is not registered with this service")

    return user


def require_tutor(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != "tutor":
        raise HTTPException(status_code=403, detail="Tutor access required")
    return current_user


def require_parent(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != "parent":
        raise HTTPException(status_code=403, detail="Parent access required")
    return current_user
