from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping, Optional

from seance_backend.services.artifact_storage import (
    RELEASES_ROOT,
    ArtifactStorageError,
    ArtifactStore,
    InvalidArtifactPath,
)

logger = logging.getLogger(__name__)

VERSION_DOCUMENT_PATH = f"{RELEASES_ROOT}/version.json"
_YAML_MANIFEST_RE = re.compile(r"^latest(-[A-Za-z0-9_.-]+)?\.ya?ml$")


class ReleaseManifestError(RuntimeError):
    pass


class ReleaseNotFoundError(ReleaseManifestError):
    pass


class ReleaseFormatError(ReleaseManifestError):
    pass


class VersionDataNotFound(ReleaseManifestError):
    pass


class InvalidReleaseFilename(ReleaseManifestError):
    pass


class ReleaseStorageError(ReleaseManifestError):
    pass


def check_filename(filename: str) -> str:
    if not filename or ".." in filename or "/" in filename or "\\" in filename:
        raise InvalidReleaseFilename("Invalid filename")
    return filename


class ReleaseManifestReader:
    """
    Reads the release metadata produced by CI.

    Nothing is cached: every call goes back to the artifact store so a deploy is visible immediately.
    """

    def __init__(
        self,
        store: ArtifactStore,
        *,
        public_base_url: str,
        artifact_patterns: Mapping[str, str],
    ) -> None:
        self.store = store
        self.public_base_url = public_base_url.rstrip("/")
        self.artifact_patterns = dict(artifact_patterns)

    def _read(self, path: str) -> Optional[bytes]:
        try:
            return self.store.read(path)
        except InvalidArtifactPath as exc:
            raise InvalidReleaseFilename("Invalid filename") from exc
        except ArtifactStorageError as exc:
            logger.error("Release storage read failed", extra={"path": path, "reason": str(exc)})
            raise ReleaseStorageError(str(exc)) from exc

    def _require_platform(self, platform: str) -> str:
        if platform not in self.artifact_patterns:
            raise ReleaseNotFoundError(f"Unknown platform: {platform}")
        return platform

    def get_version_data(self) -> Optional[dict[str, Any]]:
        raw = self._read(VERSION_DOCUMENT_PATH)
        if raw is None:
            logger.warning("version.json not found", extra={"path": VERSION_DOCUMENT_PATH})
            return None
        try:
            data = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ReleaseFormatError(f"Malformed {VERSION_DOCUMENT_PATH}: {exc}") from exc
        if not isinstance(data, dict):
            raise ReleaseFormatError(f"{VERSION_DOCUMENT_PATH} must contain a JSON object")
        return data

    def get_desktop_release(self) -> dict[str, str]:
        data = self.get_version_data()
        if data is None:
            raise VersionDataNotFound("Version data not found")
        desktop = data.get("desktop")
        if not isinstance(desktop, dict):
            raise ReleaseFormatError("version.json is missing the desktop section")
        try:
            return {
                "version": str(desktop["version"]),
                "released": str(desktop["released"]),
                "downloadUrl": str(desktop["downloadUrl"]),
            }
        except KeyError as exc:
            raise ReleaseFormatError(f"version.json desktop section is missing {exc.args[0]}") from exc

    def artifact_filename(self, platform: str, version: str) -> str:
        pattern = self.artifact_patterns[self._require_platform(platform)]
        return pattern.format(version=version)

    def download_url(self, platform: str, filename: str) -> str:
        return f"{self.public_base_url}/updates/releases/{platform}/{filename}"

    def get_release_manifest_json(self, platform: str) -> dict[str, str]:
        self._require_platform(platform)
        desktop = self.get_desktop_release()
        filename = self.artifact_filename(platform, desktop["version"])
        return {
            "version": desktop["version"],
            "releaseDate": desktop["released"],
            "url": self.download_url(platform, filename),
        }

    def get_release_manifest_yaml(self, platform: str, name: str) -> bytes:
        self._require_platform(platform)
        check_filename(name)
        if not _YAML_MANIFEST_RE.fullmatch(name):
            raise ReleaseNotFoundError("Manifest not found")
        data = self._read(f"{RELEASES_ROOT}/{platform}/{name}")
        if data is None:
            raise ReleaseNotFoundError("Manifest not found")
        return data

    def read_release_file(self, platform: str, filename: str) -> bytes:
        check_filename(filename)
        self._require_platform(platform)
        data = self._read(f"{RELEASES_ROOT}/{platform}/{filename}")
        if data is None:
            raise ReleaseNotFoundError("File not found")
        return data

    def get_latest_download(self, platform: str) -> tuple[str, bytes]:
        self._require_platform(platform)
        desktop = self.get_desktop_release()
        filename = self.artifact_filename(platform, desktop["version"])
        return filename, self.read_release_file(platform, filename)
