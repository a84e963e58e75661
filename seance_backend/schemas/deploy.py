from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class DeployFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str = Field(min_length=1, examples=["releases/darwin-arm64/Seance-2026.01.000-mac.dmg"])
    content: str = Field(description="Base64-encoded file content")


class DeployRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    files: list[DeployFile]
    clearWeb: bool = Field(
        default=False,
        validation_alias=AliasChoices("clearWeb", "clearTarget"),
        description="Clear web directory before deployment",
    )


class DeployedFile(BaseModel):
    path: str
    url: str
    size: int


class DeployResponse(BaseModel):
    success: bool
    filesDeployed: int
    timestamp: str = Field(examples=["2026-01-11T00:00:00.000Z"])
    files: list[DeployedFile] | None = None


class ErrorResponse(BaseModel):
    error: str
    message: str | None = None
