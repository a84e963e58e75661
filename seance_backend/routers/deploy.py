from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from seance_backend.deps import get_artifact_store, get_key_verifier
from seance_backend.errors import BadRequest, InternalError, Unauthorized
from seance_backend.schemas.deploy import DeployedFile, DeployRequest, DeployResponse, ErrorResponse
from seance_backend.services.artifact_storage import ArtifactStore, InvalidArtifactPath
from seance_backend.services.artifacts import ArtifactWriteError, InvalidArtifactContent, write_artifacts
from seance_backend.services.builder_keys import BuilderKeyError, BuilderKeyVerifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["deploy"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_request(body: bytes) -> DeployRequest:
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise BadRequest("Invalid JSON") from exc
    if not isinstance(payload, dict) or not isinstance(payload.get("files"), list):
        raise BadRequest("files must be an array")
    try:
        return DeployRequest.model_validate(payload)
    except ValidationError as exc:
        raise BadRequest("Invalid file entry") from exc


@router.post(
    "/deploy",
    response_model=DeployResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def deploy(
    request: Request,
    verifier: BuilderKeyVerifier = Depends(get_key_verifier),
    store: ArtifactStore = Depends(get_artifact_store),
) -> DeployResponse:
    # The signature scheme covers these exact bytes, so read before parsing.
    body = await request.body()
    try:
        verifier.verify(request.headers, body)
    except BuilderKeyError as exc:
        raise Unauthorized(str(exc)) from exc

    deploy_request = _parse_request(body)
    logger.info(
        "Deploy request accepted",
        extra={"file_count": len(deploy_request.files), "clear_web": deploy_request.clearWeb},
    )

    try:
        result = write_artifacts(
            store,
            ((item.path, item.content) for item in deploy_request.files),
            clear_web=deploy_request.clearWeb,
        )
    except InvalidArtifactPath as exc:
        logger.warning("Rejected deploy path", extra={"reason": str(exc)})
        raise BadRequest("Invalid file path") from exc
    except InvalidArtifactContent as exc:
        raise BadRequest("Invalid file content") from exc
    except ArtifactWriteError as exc:
        logger.exception("Deployment failed", extra={"written": exc.written})
        raise InternalError("Deployment failed", message=str(exc)) from exc

    files = [
        DeployedFile(path=item.path, url=item.url, size=item.size) for item in result.stored if item.url
    ]
    logger.info("Deployment complete", extra={"files_deployed": result.files_written})
    return DeployResponse(
        success=True,
        filesDeployed=result.files_written,
        timestamp=_timestamp(),
        files=files or None,
    )
