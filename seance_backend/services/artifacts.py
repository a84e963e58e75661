from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Iterable

from seance_backend.services.artifact_storage import (
    WEB_ROOT,
    ArtifactStore,
    InvalidArtifactPath,
    StoredArtifact,
    normalize_artifact_path,
)

logger = logging.getLogger(__name__)


class InvalidArtifactContent(ValueError):
    pass


class ArtifactWriteError(RuntimeError):
    def __init__(self, message: str, *, written: int) -> None:
        super().__init__(message)
        self.written = written


@dataclass
class PendingArtifact:
    path: str
    data: bytes


@dataclass
class WriteResult:
    files_written: int
    stored: list[StoredArtifact] = field(default_factory=list)


def decode_content(content: str) -> bytes:
    try:
        return base64.b64decode(content, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidArtifactContent("content must be valid base64") from exc


def prepare_artifacts(files: Iterable[tuple[str, str]]) -> list[PendingArtifact]:
    """
    Validate and decode a whole batch before anything touches storage.

    Raises InvalidArtifactPath / InvalidArtifactContent on the first bad entry.
    """
    pending: list[PendingArtifact] = []
    for path, content in files:
        normalized = normalize_artifact_path(path)
        pending.append(PendingArtifact(path=normalized, data=decode_content(content)))
    return pending


def write_artifacts(
    store: ArtifactStore,
    files: Iterable[tuple[str, str]],
    *,
    clear_web: bool = False,
) -> WriteResult:
    pending = prepare_artifacts(files)

    if clear_web:
        try:
            store.clear(WEB_ROOT)
        except Exception as exc:
            raise ArtifactWriteError(f"Failed to clear {WEB_ROOT}/: {exc}", written=0) from exc
        logger.info("Cleared web directory")

    result = WriteResult(files_written=0)
    for artifact in pending:
        try:
            stored = store.write(artifact.path, artifact.data)
        except InvalidArtifactPath:
            # A symlink inside the root can still point outside of it.
            raise
        except Exception as exc:
            logger.error(
                "Artifact write failed",
                extra={"path": artifact.path, "written": result.files_written},
            )
            raise ArtifactWriteError(
                f"Failed to write {artifact.path}: {exc}", written=result.files_written
            ) from exc
        result.files_written += 1
        result.stored.append(stored)
        logger.info("Wrote artifact", extra={"path": artifact.path, "size": stored.size})

    return result
