from __future__ import annotations

from pydantic import BaseModel, Field


class ReleaseManifest(BaseModel):
    version: str = Field(examples=["2026.01.000"])
    releaseDate: str = Field(examples=["2026-01-11T00:00:00.000Z"])
    url: str = Field(
        examples=["https://backend.seance.dev/updates/releases/darwin-arm64/Seance-2026.01.000-mac.dmg"]
    )


class LatestDownload(BaseModel):
    version: str
    released: str
    downloadUrl: str


class DownloadEligibility(BaseModel):
    canDownload: bool
    reason: str | None = None
