from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import jwt
from jose.exceptions import JWTError

from seance_backend.config import Settings

logger = logging.getLogger("auth.tokens")


def sign_access_token(app_settings: Settings, *, user_id: str, email: str) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "email": email,
        "type": "access_token",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=app_settings.JWT_EXPIRES_DAYS)).timestamp()),
    }
    return jwt.encode(claims, app_settings.JWT_SECRET, algorithm=app_settings.JWT_ALGORITHM)


def decode_access_token(app_settings: Settings, token: str) -> Optional[dict[str, Any]]:
    try:
        claims = jwt.decode(token, app_settings.JWT_SECRET, algorithms=[app_settings.JWT_ALGORITHM])
    except JWTError as exc:
        logger.debug("Rejected access token", exc_info=exc)
        return None
    if claims.get("type") != "access_token" or not claims.get("sub"):
        return None
    return claims


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]
