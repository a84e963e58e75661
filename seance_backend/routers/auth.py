from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from seance_backend.auth.dependencies import AuthContext, get_current_user, get_session_resolver
from seance_backend.auth.passwords import hash_password, verify_password
from seance_backend.auth.resolvers import SessionResolver
from seance_backend.auth.tokens import sign_access_token
from seance_backend.config import Settings
from seance_backend.db.deps import get_session
from seance_backend.db.repositories.users import UserAlreadyExistsError, UsersRepository
from seance_backend.deps import get_app_settings
from seance_backend.schemas.auth import AuthResponse, Credentials, CurrentUser, LogoutResponse, UserSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

SESSION_COOKIES = ("seance_token", "seance_refresh_token")


def _require_local_provider(resolver: SessionResolver) -> None:
    if not resolver.issues_tokens:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")


@router.post("/register", response_model=AuthResponse)
def register(
    payload: Credentials,
    session: Session = Depends(get_session),
    resolver: SessionResolver = Depends(get_session_resolver),
    app_settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    _require_local_provider(resolver)
    repo = UsersRepository(session)
    try:
        user = repo.create(email=payload.email, password_hash=hash_password(payload.password))
    except UserAlreadyExistsError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists") from exc
    logger.info("User registered", extra={"user_id": user.id})
    token = sign_access_token(app_settings, user_id=user.id, email=user.email)
    return AuthResponse(success=True, token=token, user=UserSummary(id=user.id, email=user.email))


@router.post("/login", response_model=AuthResponse)
def login(
    payload: Credentials,
    session: Session = Depends(get_session),
    resolver: SessionResolver = Depends(get_session_resolver),
    app_settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    _require_local_provider(resolver)
    user = UsersRepository(session).get_by_email(payload.email)
    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    token = sign_access_token(app_settings, user_id=user.id, email=user.email)
    return AuthResponse(success=True, token=token, user=UserSummary(id=user.id, email=user.email))


@router.get("/me", response_model=CurrentUser)
def me(auth: AuthContext = Depends(get_current_user)) -> CurrentUser:
    return CurrentUser(id=auth.user_id, email=auth.email, groups=auth.groups)


@router.post("/logout", response_model=LogoutResponse)
def logout(response: Response) -> LogoutResponse:
    for name in SESSION_COOKIES:
        response.delete_cookie(name, path="/")
    return LogoutResponse(success=True)
