import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from seance_backend.deps import get_static_site
from seance_backend.services.artifact_storage import ArtifactStorageError
from seance_backend.services.static_site import StaticSite

logger = logging.getLogger(__name__)

router = APIRouter(tags=["static"])


# Registered last so every API route wins over the catch-all.
@router.get("/{full_path:path}", include_in_schema=False)
def serve_static(request: Request, full_path: str, site: StaticSite = Depends(get_static_site)) -> Response:
    """
    Serve the deployed web bundle.

    Only whole API path segments are excluded from the index.html fallback:
    `/updates/x` is never a client route, while `/updates-archive` still is.
    """
    try:
        asset = site.resolve(request.url.path)
    except ArtifactStorageError as exc:
        logger.error("Static asset read failed", extra={"path": full_path, "reason": str(exc)})
        return PlainTextResponse("Storage unavailable", status_code=500)
    if asset is None:
        return PlainTextResponse("Not found", status_code=404)
    return Response(content=asset.body, media_type=asset.content_type)
