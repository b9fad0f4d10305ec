"""Caller identification from request headers."""

from typing import Optional
from fastapi import HTTPException


def require_user(user_id: Optional[str]) -> str:
    """Return the X-User-Id value or raise 401 when it is missing."""
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


def client_ip(req) -> Optional[str]:
    return req.client.host if req.client else None
