from __future__ import annotations

import pytest
from pydantic import ValidationError

from seance_backend.config import (
    BuilderAuthScheme,
    BuilderConfig,
    BuilderConfigError,
    Settings,
    load_builder_config,
)

DIGEST = "adf1e1bee2a545ca24690755a59ea58af30cf9f86692541a6a932a75dc831334"


def test_load_builder_config_section(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(f"builder:\n  builder_key_hashes:\n    - \"{DIGEST.upper()}\"\n", encoding="utf-8")

    config = load_builder_config(path)

    assert config.scheme == BuilderAuthScheme.shared_secret
    assert config.builder_key_hashes == [DIGEST]


def test_load_builder_config_top_level_hashes(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(f"builder_key_hashes:\n  - {DIGEST}\n", encoding="utf-8")

    assert load_builder_config(path).builder_key_hashes == [DIGEST]


@pytest.mark.parametrize(
    "content",
    [
        "builder: [unterminated",
        "- just\n- a list\n",
        "builder:\n  builder_key_hashes:\n    - not-a-hash\n",
        "builder:\n  builder_key_hashes: []\n",
    ],
)
def test_load_builder_config_rejects_bad_files(tmp_path, content):
    path = tmp_path / "config.yml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(BuilderConfigError):
        load_builder_config(path)


def test_load_builder_config_missing_file(tmp_path):
    with pytest.raises(BuilderConfigError, match="not found"):
        load_builder_config(tmp_path / "absent.yml")


def test_builder_config_requires_explicit_scheme_for_both_lists():
    with pytest.raises(ValidationError):
        BuilderConfig(builder_key_hashes=[DIGEST], builder_public_keys=["ssh-ed25519 AAAA"])

    config = BuilderConfig(
        scheme="signature",
        builder_key_hashes=[DIGEST],
        builder_public_keys=["ssh-ed25519 AAAA"],
    )
    assert config.scheme == BuilderAuthScheme.signature


def test_settings_split_comma_separated_lists():
    app_settings = Settings(BACKEND_CORS_ORIGINS="https://a.example, https://b.example", _env_file=None)

    assert app_settings.BACKEND_CORS_ORIGINS == ["https://a.example", "https://b.example"]


def test_settings_require_object_storage_variables():
    with pytest.raises(ValidationError, match="ARTIFACT_STORAGE_BUCKET"):
        Settings(ARTIFACT_STORAGE_BACKEND="s3", _env_file=None)


def test_settings_reject_pattern_without_version():
    with pytest.raises(ValidationError):
        Settings(RELEASE_ARTIFACT_PATTERNS={"darwin-arm64": "Seance-mac.dmg"}, _env_file=None)


def test_settings_require_jwt_secret_in_production():
    with pytest.raises(ValidationError, match="JWT_SECRET"):
        Settings(ENVIRONMENT="production", JWT_SECRET="dev-secret-change-in-production", _env_file=None)


def test_settings_oidc_defaults_jwks_url():
    app_settings = Settings(
        AUTH_PROVIDER="oidc",
        OIDC_ISSUER="https://auth.seance.dev/",
        OIDC_AUDIENCE="seance-web",
        _env_file=None,
    )

    assert app_settings.oidc_jwks_url == "https://auth.seance.dev/oauth/v2/keys"
    assert app_settings.OIDC_AUDIENCE == ["seance-web"]


def test_settings_reject_pattern_with_unknown_placeholder():
    with pytest.raises(ValidationError, match="only use the"):
        Settings(RELEASE_ARTIFACT_PATTERNS={"darwin-arm64": "Seance-{version}-{arch}.dmg"}, _env_file=None)
