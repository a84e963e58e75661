from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from seance_backend.auth.dependencies import AuthContext, get_current_user, get_optional_user
from seance_backend.db.deps import get_session
from seance_backend.db.repositories.subscriptions import SubscriptionsRepository
from seance_backend.deps import get_release_reader
from seance_backend.schemas.releases import DownloadEligibility, LatestDownload
from seance_backend.services.releases import (
    ReleaseFormatError,
    ReleaseManifestReader,
    ReleaseStorageError,
    VersionDataNotFound,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/downloads", tags=["downloads"])

SUBSCRIPTION_REQUIRED = "Active subscription required to download prebuilt binaries"


def _latest(reader: ReleaseManifestReader) -> LatestDownload:
    try:
        return LatestDownload(**reader.get_desktop_release())
    except (VersionDataNotFound, ReleaseFormatError, ReleaseStorageError) as exc:
        logger.error("Latest release unavailable", extra={"reason": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Version data not found",
        ) from exc


@router.get("/latest", response_model=LatestDownload)
def latest(reader: ReleaseManifestReader = Depends(get_release_reader)) -> LatestDownload:
    return _latest(reader)


@router.get("/protected", response_model=LatestDownload)
def protected(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    reader: ReleaseManifestReader = Depends(get_release_reader),
) -> LatestDownload:
    if not SubscriptionsRepository(session).has_active(auth.email):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=SUBSCRIPTION_REQUIRED)
    return _latest(reader)


@router.get("/eligibility", response_model=DownloadEligibility)
def eligibility(
    auth: Optional[AuthContext] = Depends(get_optional_user),
    session: Session = Depends(get_session),
) -> DownloadEligibility:
    if auth is None:
        return DownloadEligibility(canDownload=False, reason="Authentication required")
    if not SubscriptionsRepository(session).has_active(auth.email):
        return DownloadEligibility(canDownload=False, reason=SUBSCRIPTION_REQUIRED)
    return DownloadEligibility(canDownload=True)
