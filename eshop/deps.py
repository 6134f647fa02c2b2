"""Per-route capability requirements, composed into handlers with ``Depends``."""
import logging

import jwt
from fastapi import Depends, Header, HTTPException

from .auth import decode_access_token

logger = logging.getLogger(__name__)


async def optional_claims(authorization: str | None = Header(default=None)) -> dict | None:
    """Claims of the bearer token if one was sent, else None. A bad token is still a 401."""
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    token = authorization.split(None, 1)[1]
    try:
        claims = decode_access_token(token)
    except jwt.PyJWTError as e:
        logger.info("rejected bearer token: %s", e)
        raise HTTPException(status_code=401, detail="invalid token")
    if claims.get("userId") is None:
        raise HTTPException(status_code=401, detail="invalid token payload")
    return claims


async def get_current_claims(claims: dict | None = Depends(optional_claims)) -> dict:
    if claims is None:
        raise HTTPException(status_code=401, detail="missing bearer token")
    return claims


async def require_admin(claims: dict = Depends(get_current_claims)) -> dict:
    if not claims.get("isAdmin"):
        raise HTTPException(status_code=403, detail="forbidden: admin required")
    return claims


def ensure_self_or_admin(claims: dict, user_id: int) -> None:
    if claims.get("isAdmin"):
        return
    if claims.get("userId") != user_id:
        raise HTTPException(status_code=403, detail="forbidden")
