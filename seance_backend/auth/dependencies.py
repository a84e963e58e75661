import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from seance_backend.auth.resolvers import AuthContext, SessionResolver
from seance_backend.db.deps import get_session

logger = logging.getLogger("auth.deps")

__all__ = ["AuthContext", "get_current_user", "get_optional_user", "get_session_resolver"]


def get_session_resolver(request: Request) -> SessionResolver:
    return request.app.state.session_resolver


def get_optional_user(
    request: Request,
    session: Session = Depends(get_session),
    resolver: SessionResolver = Depends(get_session_resolver),
) -> Optional[AuthContext]:
    user = resolver.resolve(request, session)
    if user is not None:
        logger.debug("AuthContext built", extra={"sub": user.user_id, "provider": resolver.provider})
    return user


def get_current_user(user: Optional[AuthContext] = Depends(get_optional_user)) -> AuthContext:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user
