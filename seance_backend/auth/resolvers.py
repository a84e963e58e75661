"""
Session resolution.

Exactly one resolver is active per deployment, picked by `AUTH_PROVIDER`:

- `local`: HS256 access tokens issued by `/auth/login` and `/auth/register`.
- `authelia`: the Authelia session cookie, validated through Authelia's `/api/verify`.
- `oidc`: bearer tokens issued by an OIDC provider such as Zitadel.

A resolver returns None for anonymous requests; callers decide whether that is an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx
from fastapi import Request
from sqlalchemy.orm import Session

from seance_backend.auth.jwks import OidcTokenError, OidcTokenVerifier
from seance_backend.auth.tokens import decode_access_token, extract_bearer_token
from seance_backend.config import Settings
from seance_backend.db.repositories.users import UsersRepository

logger = logging.getLogger("auth.resolvers")


@dataclass
class AuthContext:
    user_id: str
    email: str
    groups: list[str] = field(default_factory=list)


class SessionResolver:
    provider: str
    issues_tokens: bool = False

    def resolve(self, request: Request, session: Session) -> Optional[AuthContext]:
        raise NotImplementedError


class LocalSessionResolver(SessionResolver):
    provider = "local"
    issues_tokens = True

    def __init__(self, app_settings: Settings) -> None:
        self.settings = app_settings

    def resolve(self, request: Request, session: Session) -> Optional[AuthContext]:
        token = extract_bearer_token(request.headers.get("authorization"))
        if not token:
            return None
        claims = decode_access_token(self.settings, token)
        if not claims:
            return None
        # The token outlives the account if the user was removed.
        user = UsersRepository(session).get(claims["sub"])
        if user is None:
            logger.info("Token references unknown user", extra={"sub": claims["sub"]})
            return None
        return AuthContext(user_id=user.id, email=user.email)


class AutheliaSessionResolver(SessionResolver):
    provider = "authelia"

    def __init__(self, app_settings: Settings) -> None:
        self.verify_url = f"{app_settings.AUTHELIA_URL.rstrip('/')}/api/verify"
        self.cookie_name = app_settings.AUTHELIA_SESSION_COOKIE
        self.original_url = app_settings.AUTHELIA_ORIGINAL_URL
        self.timeout = app_settings.AUTHELIA_TIMEOUT_SECONDS

    def resolve(self, request: Request, session: Session) -> Optional[AuthContext]:
        session_cookie = request.cookies.get(self.cookie_name)
        if not session_cookie:
            return None
        try:
            resp = httpx.get(
                self.verify_url,
                headers={
                    "Cookie": f"{self.cookie_name}={session_cookie}",
                    "X-Original-URL": self.original_url,
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError:
            logger.exception("Authelia session validation failed", extra={"verify_url": self.verify_url})
            return None
        if resp.status_code != 200:
            return None

        username = resp.headers.get("Remote-User")
        email = resp.headers.get("Remote-Email")
        if not username or not email:
            return None
        groups_header = resp.headers.get("Remote-Groups") or ""
        groups = [group.strip() for group in groups_header.split(",") if group.strip()]
        return AuthContext(user_id=username, email=email, groups=groups)


class OidcSessionResolver(SessionResolver):
    provider = "oidc"

    def __init__(self, verifier: OidcTokenVerifier) -> None:
        self.verifier = verifier

    def resolve(self, request: Request, session: Session) -> Optional[AuthContext]:
        token = extract_bearer_token(request.headers.get("authorization"))
        if not token:
            return None
        try:
            claims = self.verifier.verify(token)
        except OidcTokenError as exc:
            logger.warning("OIDC token rejected", exc_info=exc)
            return None
        user_id = claims.get("sub")
        email = claims.get("email")
        if not user_id or not email:
            logger.warning("OIDC token missing sub or email", extra={"claims_keys": list(claims.keys())})
            return None
        # Zitadel puts project roles under this claim as {role: {org_id: domain}}.
        roles = claims.get("urn:zitadel:iam:org:project:roles") or {}
        groups = sorted(roles.keys()) if isinstance(roles, dict) else []
        return AuthContext(user_id=user_id, email=email, groups=groups)


def build_session_resolver(app_settings: Settings) -> SessionResolver:
    provider = app_settings.AUTH_PROVIDER
    if provider == "authelia":
        resolver: SessionResolver = AutheliaSessionResolver(app_settings)
    elif provider == "oidc":
        resolver = OidcSessionResolver(
            OidcTokenVerifier(
                issuer=app_settings.OIDC_ISSUER or "",
                jwks_url=app_settings.oidc_jwks_url,
                audience=app_settings.OIDC_AUDIENCE,
            )
        )
    else:
        resolver = LocalSessionResolver(app_settings)
    logger.info("Session resolver configured", extra={"provider": resolver.provider})
    return resolver
