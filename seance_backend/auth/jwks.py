from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException, status
from jose import jwt
from jose.exceptions import JWSError, JWTError

logger = logging.getLogger("auth.oidc")


class OidcTokenError(ValueError):
    pass


class _JWKSCache:
    def __init__(self, ttl_seconds: int = 300) -> None:
        self.jwks: Optional[Dict[str, Any]] = None
        self.cached_at: float = 0.0
        self.ttl_seconds = ttl_seconds

    def get(self) -> Optional[Dict[str, Any]]:
        if self.jwks and (time.time() - self.cached_at) < self.ttl_seconds:
            return self.jwks
        return None

    def set(self, jwks: Optional[Dict[str, Any]]) -> None:
        self.jwks = jwks
        self.cached_at = time.time() if jwks else 0.0


class OidcTokenVerifier:
    """Verifies bearer tokens issued by an OIDC provider (Zitadel) against its JWKS."""

    def __init__(self, *, issuer: str, jwks_url: str, audience: list[str], timeout: float = 10.0) -> None:
        self.issuer = issuer
        self.jwks_url = jwks_url
        self.audience = list(audience)
        self.timeout = timeout
        self._cache = _JWKSCache()

    def _fetch_jwks(self) -> Dict[str, Any]:
        cached = self._cache.get()
        if cached:
            return cached
        try:
            resp = httpx.get(self.jwks_url, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            logger.exception("JWKS fetch failed", extra={"jwks_url": self.jwks_url})
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Unable to fetch OIDC signing keys",
            ) from exc
        self._cache.set(data)
        return data

    def _find_key(self, kid: str) -> Optional[Dict[str, Any]]:
        for key in self._fetch_jwks().get("keys", []):
            if key.get("kid") == kid:
                return key
        return None

    def _get_public_key(self, token: str) -> Dict[str, Any]:
        try:
            headers = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise OidcTokenError("Invalid token header") from exc
        kid = headers.get("kid")
        if not kid:
            raise OidcTokenError("Missing kid in token")
        key = self._find_key(kid)
        if key is None:
            # cache miss; refetch once
            self._cache.set(None)
            key = self._find_key(kid)
        if key is None:
            logger.warning("Signing key not found", extra={"kid": kid})
            raise OidcTokenError("Signing key not found")
        return key

    def verify(self, token: str) -> Dict[str, Any]:
        public_key = self._get_public_key(token)
        try:
            claims = jwt.decode(
                token,
                key=public_key,
                algorithms=[public_key.get("alg", "RS256")],
                issuer=self.issuer,
                options={"verify_aud": False},
            )
        except (JWTError, JWSError) as exc:
            raise OidcTokenError("Invalid token") from exc

        token_audience = claims.get("aud")
        if isinstance(token_audience, str):
            token_audience = [token_audience]
        if not set(token_audience or []) & set(self.audience):
            raise OidcTokenError("Invalid token audience")

        logger.debug(
            "Verified OIDC token",
            extra={"kid": public_key.get("kid"), "iss": claims.get("iss"), "sub": claims.get("sub")},
        )
        return claims
