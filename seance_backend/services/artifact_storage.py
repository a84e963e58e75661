from __future__ import annotations

import errno
import logging
import mimetypes
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from seance_backend.config import Settings

logger = logging.getLogger(__name__)

WEB_ROOT = "web"
RELEASES_ROOT = "releases"

_CONTENT_TYPES = {
    ".json": "application/json",
    ".yml": "text/yaml",
    ".yaml": "text/yaml",
    ".dmg": "application/x-apple-diskimage",
    ".zip": "application/zip",
    ".html": "text/html",
    ".js": "application/javascript",
    ".css": "text/css",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
}


class ArtifactStorageError(RuntimeError):
    pass


class InvalidArtifactPath(ValueError):
    pass


def guess_content_type(path: str) -> str:
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in _CONTENT_TYPES:
        return _CONTENT_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(path)
    return guessed or "application/octet-stream"


def normalize_artifact_path(path: str) -> str:
    """
    Validate a deploy-relative path and return it in canonical posix form.

    Rejects empty, absolute, backslash and `..` paths so that every accepted
    path stays under the deployment root.
    """
    if not isinstance(path, str) or not path.strip():
        raise InvalidArtifactPath("path must be a non-empty string")
    if "\\" in path or "\x00" in path:
        raise InvalidArtifactPath(f"path contains forbidden characters: {path!r}")
    pure = PurePosixPath(path)
    if pure.is_absolute():
        raise InvalidArtifactPath(f"path must be relative: {path}")
    parts = [part for part in pure.parts if part not in ("", ".")]
    if not parts:
        raise InvalidArtifactPath(f"path does not name a file: {path}")
    if any(part == ".." for part in parts):
        raise InvalidArtifactPath(f"path must not contain '..': {path}")
    return "/".join(parts)


@dataclass
class StoredArtifact:
    path: str
    size: int
    url: Optional[str] = None


class ArtifactStore:
    """Blob storage addressed by deploy-relative posix paths."""

    backend: str

    def write(self, path: str, data: bytes) -> StoredArtifact:
        raise NotImplementedError

    def read(self, path: str) -> Optional[bytes]:
        raise NotImplementedError

    def clear(self, prefix: str) -> None:
        raise NotImplementedError


class LocalArtifactStore(ArtifactStore):
    backend = "local"

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def resolve(self, path: str) -> Path:
        relative = normalize_artifact_path(path)
        candidate = (self.root / relative).resolve()
        if candidate == self.root or not candidate.is_relative_to(self.root):
            raise InvalidArtifactPath(f"path escapes the deployment root: {path}")
        return candidate

    def write(self, path: str, data: bytes) -> StoredArtifact:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return StoredArtifact(path=normalize_artifact_path(path), size=len(data))

    def read(self, path: str) -> Optional[bytes]:
        target = self.resolve(path)
        try:
            if not target.is_file():
                return None
            return target.read_bytes()
        except OSError as exc:
            # A name the filesystem cannot hold cannot have been deployed.
            if exc.errno == errno.ENAMETOOLONG:
                return None
            raise

    def clear(self, prefix: str) -> None:
        target = self.resolve(prefix)
        if target.exists():
            shutil.rmtree(target)
        target.mkdir(parents=True, exist_ok=True)


class ObjectArtifactStore(ArtifactStore):
    """
    S3-compatible storage (DigitalOcean Spaces) for deployed artifacts.

    Objects are written public-read under `<prefix>/<path>` and exposed through the CDN endpoint.
    """

    backend = "s3"

    def __init__(
        self,
        *,
        client: Any,
        bucket: str,
        prefix: str,
        cdn_endpoint: str,
    ) -> None:
        if not bucket:
            raise ArtifactStorageError("bucket is required")
        if not prefix:
            raise ArtifactStorageError("prefix is required")
        if not cdn_endpoint:
            raise ArtifactStorageError("cdn_endpoint is required")
        self.client = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.cdn_endpoint = cdn_endpoint.rstrip("/")

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "ObjectArtifactStore":
        addressing_style = "path" if app_settings.ARTIFACT_STORAGE_FORCE_PATH_STYLE else "auto"
        session = boto3.session.Session()
        client = session.client(
            "s3",
            endpoint_url=app_settings.ARTIFACT_STORAGE_ENDPOINT,
            aws_access_key_id=app_settings.ARTIFACT_STORAGE_ACCESS_KEY,
            aws_secret_access_key=app_settings.ARTIFACT_STORAGE_SECRET_KEY,
            region_name=app_settings.ARTIFACT_STORAGE_REGION,
            config=Config(
                s3={"addressing_style": addressing_style},
                signature_version="s3v4",
            ),
        )
        return cls(
            client=client,
            bucket=app_settings.ARTIFACT_STORAGE_BUCKET or "",
            prefix=app_settings.ARTIFACT_STORAGE_PREFIX,
            cdn_endpoint=app_settings.ARTIFACT_STORAGE_CDN_ENDPOINT or "",
        )

    def build_key(self, path: str) -> str:
        return f"{self.prefix}/{normalize_artifact_path(path)}"

    def public_url(self, path: str) -> str:
        return f"{self.cdn_endpoint}/{self.build_key(path)}"

    def write(self, path: str, data: bytes) -> StoredArtifact:
        key = self.build_key(path)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=guess_content_type(path),
                ACL="public-read",
            )
        except ClientError as exc:
            raise ArtifactStorageError(f"Failed to upload {key}: {exc}") from exc
        logger.info("Uploaded artifact", extra={"key": key, "size": len(data)})
        return StoredArtifact(path=normalize_artifact_path(path), size=len(data), url=self.public_url(path))

    def read(self, path: str) -> Optional[bytes]:
        key = self.build_key(path)
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code") if hasattr(exc, "response") else None
            if code in ("404", "NoSuchKey", "NotFound"):
                return None
            raise ArtifactStorageError(f"Failed to download {key}: {exc}") from exc
        body = obj.get("Body")
        return body.read() if body else b""

    def clear(self, prefix: str) -> None:
        key_prefix = f"{self.build_key(prefix)}/"
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=key_prefix):
            objects = [{"Key": item["Key"]} for item in page.get("Contents", [])]
            if not objects:
                continue
            try:
                self.client.delete_objects(Bucket=self.bucket, Delete={"Objects": objects, "Quiet": True})
            except ClientError as exc:
                raise ArtifactStorageError(f"Failed to clear {key_prefix}: {exc}") from exc
        logger.info("Cleared artifact prefix", extra={"key_prefix": key_prefix})


def build_artifact_store(app_settings: Settings) -> ArtifactStore:
    if app_settings.ARTIFACT_STORAGE_BACKEND == "s3":
        store: ArtifactStore = ObjectArtifactStore.from_settings(app_settings)
        logger.info(
            "Using object storage for artifacts",
            extra={"bucket": app_settings.ARTIFACT_STORAGE_BUCKET, "prefix": app_settings.ARTIFACT_STORAGE_PREFIX},
        )
        return store
    logger.info("Using local storage for artifacts", extra={"root": app_settings.DEPLOY_ROOT_DIR})
    return LocalArtifactStore(app_settings.DEPLOY_ROOT_DIR)
