import json
import re
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load env values for components that read os.environ directly (e.g., boto3, stripe).
_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)

_DEV_JWT_SECRET = "dev-secret-change-in-production"
_SHA256_HEX_RE = re.compile(r"^[a-f0-9]{64}$")


def _coerce_json(value: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _split_csv(value: str | list[str]) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./seance.db"
    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    # Deployment root for the local artifact store. Holds `releases/` and `web/`.
    DEPLOY_ROOT_DIR: str = "."
    BUILDER_CONFIG_PATH: str = "config.yml"

    ARTIFACT_STORAGE_BACKEND: Literal["local", "s3"] = "local"
    ARTIFACT_STORAGE_BUCKET: str | None = None
    ARTIFACT_STORAGE_REGION: str | None = None
    ARTIFACT_STORAGE_ENDPOINT: str | None = None
    ARTIFACT_STORAGE_CDN_ENDPOINT: str | None = None
    ARTIFACT_STORAGE_ACCESS_KEY: str | None = None
    ARTIFACT_STORAGE_SECRET_KEY: str | None = None
    ARTIFACT_STORAGE_PREFIX: str = "prod"
    ARTIFACT_STORAGE_FORCE_PATH_STYLE: bool = False

    PUBLIC_BASE_URL: str = "https://backend.seance.dev"
    RELEASE_ARTIFACT_PATTERNS: dict[str, str] = Field(
        default_factory=lambda: {"darwin-arm64": "Seance-{version}-mac.dmg"}
    )

    AUTH_PROVIDER: Literal["local", "authelia", "oidc"] = "local"
    JWT_SECRET: str = _DEV_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_DAYS: int = 7

    AUTHELIA_URL: str = "http://localhost:9091"
    AUTHELIA_SESSION_COOKIE: str = "seance_session"
    AUTHELIA_ORIGINAL_URL: str = "https://backend.dev.localhost/api/auth/me"
    AUTHELIA_TIMEOUT_SECONDS: float = 10.0

    OIDC_ISSUER: str | None = None
    OIDC_JWKS_URL: str | None = None
    OIDC_AUDIENCE: list[str] = []

    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, value: str | list[str]) -> list[str]:
        return _split_csv(value)

    @field_validator("OIDC_AUDIENCE", mode="before")
    @classmethod
    def split_audience(cls, value: str | list[str]) -> list[str]:
        return _split_csv(value)

    @field_validator("RELEASE_ARTIFACT_PATTERNS")
    @classmethod
    def validate_artifact_patterns(cls, value: dict[str, str]) -> dict[str, str]:
        for platform, pattern in value.items():
            if "{version}" not in pattern:
                raise ValueError(f"Artifact pattern for {platform} must contain '{{version}}'")
            try:
                pattern.format(version="0")
            except (KeyError, IndexError, ValueError) as exc:
                raise ValueError(
                    f"Artifact pattern for {platform} may only use the {{version}} placeholder: {pattern}"
                ) from exc
            if "/" in platform or ".." in platform:
                raise ValueError(f"Invalid platform name: {platform}")
        return value

    @model_validator(mode="after")
    def validate_object_storage(self) -> "Settings":
        if self.ARTIFACT_STORAGE_BACKEND != "s3":
            return self
        required = {
            "ARTIFACT_STORAGE_BUCKET": self.ARTIFACT_STORAGE_BUCKET,
            "ARTIFACT_STORAGE_REGION": self.ARTIFACT_STORAGE_REGION,
            "ARTIFACT_STORAGE_ENDPOINT": self.ARTIFACT_STORAGE_ENDPOINT,
            "ARTIFACT_STORAGE_CDN_ENDPOINT": self.ARTIFACT_STORAGE_CDN_ENDPOINT,
            "ARTIFACT_STORAGE_ACCESS_KEY": self.ARTIFACT_STORAGE_ACCESS_KEY,
            "ARTIFACT_STORAGE_SECRET_KEY": self.ARTIFACT_STORAGE_SECRET_KEY,
            "ARTIFACT_STORAGE_PREFIX": self.ARTIFACT_STORAGE_PREFIX,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ValueError(
                f"{', '.join(missing)} required when ARTIFACT_STORAGE_BACKEND=s3"
            )
        return self

    @model_validator(mode="after")
    def validate_auth_provider(self) -> "Settings":
        if self.AUTH_PROVIDER == "local":
            if self.JWT_SECRET == _DEV_JWT_SECRET and self.ENVIRONMENT == "production":
                raise ValueError("JWT_SECRET must be set in production")
        if self.AUTH_PROVIDER == "oidc":
            if not self.OIDC_ISSUER:
                raise ValueError("OIDC_ISSUER is required when AUTH_PROVIDER=oidc")
            if not self.OIDC_AUDIENCE:
                raise ValueError("OIDC_AUDIENCE is required when AUTH_PROVIDER=oidc")
        return self

    @property
    def oidc_jwks_url(self) -> str:
        if self.OIDC_JWKS_URL:
            return self.OIDC_JWKS_URL
        # Zitadel publishes its keys here.
        return f"{(self.OIDC_ISSUER or '').rstrip('/')}/oauth/v2/keys"

    @property
    def public_base_url(self) -> str:
        return self.PUBLIC_BASE_URL.rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", env_json_loads=_coerce_json, extra="ignore")


settings = Settings()


class BuilderConfigError(RuntimeError):
    pass


class BuilderAuthScheme(str, Enum):
    shared_secret = "shared_secret"
    signature = "signature"


class BuilderConfig(BaseModel):
    """
    Accepted builder credentials, read from the `builder` section of config.yml.

    Example:

        builder:
          scheme: shared_secret
          builder_key_hashes:
            - "adf1e1bee2a545ca24690755a59ea58af30cf9f86692541a6a932a75dc831334"

    The scheme may be omitted when only one credential list is present.
    """

    scheme: Optional[BuilderAuthScheme] = None
    builder_key_hashes: list[str] = Field(default_factory=list)
    builder_public_keys: list[str] = Field(default_factory=list)

    @field_validator("builder_key_hashes")
    @classmethod
    def validate_hashes(cls, value: list[str]) -> list[str]:
        normalized = []
        for item in value:
            digest = item.strip().lower()
            if not _SHA256_HEX_RE.fullmatch(digest):
                raise ValueError(f"Invalid SHA-256 hash in builder_key_hashes: {item}")
            normalized.append(digest)
        return normalized

    @field_validator("builder_public_keys")
    @classmethod
    def strip_keys(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item.strip()]

    @model_validator(mode="after")
    def resolve_scheme(self) -> "BuilderConfig":
        has_hashes = bool(self.builder_key_hashes)
        has_keys = bool(self.builder_public_keys)
        if self.scheme is None:
            if has_hashes and has_keys:
                raise ValueError(
                    "Configure either builder_key_hashes or builder_public_keys, not both "
                    "(or set scheme explicitly)"
                )
            if has_hashes:
                self.scheme = BuilderAuthScheme.shared_secret
            elif has_keys:
                self.scheme = BuilderAuthScheme.signature
            else:
                raise ValueError("At least one builder credential must be configured")
        elif self.scheme == BuilderAuthScheme.shared_secret and not has_hashes:
            raise ValueError("scheme shared_secret requires at least one entry in builder_key_hashes")
        elif self.scheme == BuilderAuthScheme.signature and not has_keys:
            raise ValueError("scheme signature requires at least one entry in builder_public_keys")
        return self


def load_builder_config(path: str | Path) -> BuilderConfig:
    config_path = Path(path)
    if not config_path.is_file():
        raise BuilderConfigError(f"Builder config not found at {config_path}")
    try:
        raw: Any = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise BuilderConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise BuilderConfigError(f"{config_path} must contain a mapping")
    # Older config files keep builder_key_hashes at the top level.
    section = raw.get("builder", raw)
    if not isinstance(section, dict):
        raise BuilderConfigError(f"'builder' section in {config_path} must be a mapping")

    try:
        return BuilderConfig.model_validate(section)
    except ValidationError as exc:
        raise BuilderConfigError(f"Invalid builder config in {config_path}: {exc}") from exc
