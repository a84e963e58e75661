"""
Auto-updater endpoints.

`version.json` and `RELEASES.json` answer with JSON errors; the YAML manifests
and binaries answer with plain text, matching what the desktop updater expects.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import ORJSONResponse, PlainTextResponse, Response

from seance_backend.deps import get_release_reader
from seance_backend.errors import InternalError, NotFound
from seance_backend.schemas.releases import ReleaseManifest
from seance_backend.services.artifact_storage import guess_content_type
from seance_backend.services.releases import (
    InvalidReleaseFilename,
    ReleaseFormatError,
    ReleaseManifestReader,
    ReleaseNotFoundError,
    ReleaseStorageError,
    VersionDataNotFound,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/updates", tags=["updates"])

STORAGE_UNAVAILABLE = "Storage unavailable"


def _text_error(status_code: int, message: str) -> PlainTextResponse:
    return PlainTextResponse(message, status_code=status_code)


def _attachment(filename: str, data: bytes) -> Response:
    return Response(
        content=data,
        media_type=guess_content_type(filename),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/api/version.json")
def get_version_data(reader: ReleaseManifestReader = Depends(get_release_reader)) -> Any:
    try:
        data = reader.get_version_data()
    except (ReleaseFormatError, ReleaseStorageError) as exc:
        logger.error("Unreadable version data", extra={"reason": str(exc)})
        raise InternalError("Version data not found") from exc
    if data is None:
        raise InternalError("Version data not found")
    return ORJSONResponse(content=data)


@router.get("/{platform}/RELEASES.json", response_model=ReleaseManifest)
def get_release_manifest(
    platform: str,
    reader: ReleaseManifestReader = Depends(get_release_reader),
) -> ReleaseManifest:
    try:
        return ReleaseManifest(**reader.get_release_manifest_json(platform))
    except ReleaseNotFoundError as exc:
        raise NotFound("Not found") from exc
    except (VersionDataNotFound, ReleaseFormatError, ReleaseStorageError) as exc:
        logger.error("Cannot build release manifest", extra={"platform": platform, "reason": str(exc)})
        raise InternalError("Version data not found") from exc


@router.get("/{platform}/download-latest")
def download_latest(
    platform: str,
    reader: ReleaseManifestReader = Depends(get_release_reader),
) -> Response:
    try:
        filename, data = reader.get_latest_download(platform)
    except ReleaseNotFoundError:
        return _text_error(status.HTTP_404_NOT_FOUND, "File not found")
    except (VersionDataNotFound, ReleaseFormatError, ReleaseStorageError) as exc:
        logger.error("Cannot resolve latest download", extra={"platform": platform, "reason": str(exc)})
        return _text_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Version data not found")
    except InvalidReleaseFilename:
        return _text_error(status.HTTP_400_BAD_REQUEST, "Invalid filename")
    return _attachment(filename, data)


@router.get("/releases/{platform}/{filename:path}")
def download_release_file(
    platform: str,
    filename: str,
    reader: ReleaseManifestReader = Depends(get_release_reader),
) -> Response:
    # `filename` is already percent-decoded, so `..%2f` arrives as `../`.
    try:
        data = reader.read_release_file(platform, filename)
    except InvalidReleaseFilename:
        logger.warning("Rejected release filename", extra={"platform": platform, "filename": filename})
        return _text_error(status.HTTP_400_BAD_REQUEST, "Invalid filename")
    except ReleaseNotFoundError:
        return _text_error(status.HTTP_404_NOT_FOUND, "File not found")
    except ReleaseStorageError:
        return _text_error(status.HTTP_500_INTERNAL_SERVER_ERROR, STORAGE_UNAVAILABLE)
    return _attachment(filename, data)


@router.get("/{platform}/{manifest_name}")
def get_yaml_manifest(
    platform: str,
    manifest_name: str,
    reader: ReleaseManifestReader = Depends(get_release_reader),
) -> Response:
    try:
        data = reader.get_release_manifest_yaml(platform, manifest_name)
    except InvalidReleaseFilename:
        return _text_error(status.HTTP_400_BAD_REQUEST, "Invalid filename")
    except ReleaseNotFoundError:
        return _text_error(status.HTTP_404_NOT_FOUND, "Manifest not found")
    except ReleaseStorageError:
        return _text_error(status.HTTP_500_INTERNAL_SERVER_ERROR, STORAGE_UNAVAILABLE)
    return Response(content=data, media_type="text/yaml")
