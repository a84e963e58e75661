from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Sequence

from seance_backend.services.artifact_storage import (
    WEB_ROOT,
    ArtifactStore,
    InvalidArtifactPath,
    guess_content_type,
    normalize_artifact_path,
)

logger = logging.getLogger(__name__)

INDEX_DOCUMENT = "index.html"
DEFAULT_EXCLUDED_PREFIXES = ("/updates", "/deploy", "/auth", "/stripe", "/downloads", "/health")


@dataclass
class StaticAsset:
    path: str
    body: bytes
    content_type: str


def is_excluded(request_path: str, prefixes: Sequence[str]) -> bool:
    """Match whole path segments, so `/updates-archive` is not under `/updates`."""
    for prefix in prefixes:
        if request_path == prefix or request_path.startswith(prefix.rstrip("/") + "/"):
            return True
    return False


class StaticSite:
    """Deployed web bundle under `web/`, with index.html fallback for client-side routes."""

    def __init__(self, store: ArtifactStore, *, excluded_prefixes: Sequence[str] = DEFAULT_EXCLUDED_PREFIXES) -> None:
        self.store = store
        self.excluded_prefixes = tuple(excluded_prefixes)

    def _load(self, relative: str) -> Optional[StaticAsset]:
        path = f"{WEB_ROOT}/{relative}"
        try:
            body = self.store.read(path)
        except InvalidArtifactPath:
            logger.warning("Rejected static path", extra={"path": relative})
            return None
        if body is None:
            return None
        return StaticAsset(path=path, body=body, content_type=guess_content_type(path))

    def resolve(self, request_path: str) -> Optional[StaticAsset]:
        if not request_path.startswith("/"):
            request_path = f"/{request_path}"
        if is_excluded(request_path, self.excluded_prefixes):
            return None

        relative = request_path.lstrip("/")
        if relative:
            try:
                normalize_artifact_path(relative)
            except InvalidArtifactPath:
                logger.warning("Rejected static path", extra={"path": relative})
                return None
        has_extension = bool(PurePosixPath(relative).suffix) if relative else False
        if not relative or relative.endswith("/"):
            relative = f"{relative}{INDEX_DOCUMENT}"

        asset = self._load(relative)
        if asset is not None:
            return asset

        if not has_extension:
            return self._load(INDEX_DOCUMENT)
        return None
