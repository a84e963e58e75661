from fastapi import Request

from seance_backend.config import Settings
from seance_backend.services.artifact_storage import ArtifactStore
from seance_backend.services.builder_keys import BuilderKeyVerifier
from seance_backend.services.releases import ReleaseManifestReader
from seance_backend.services.static_site import StaticSite


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_key_verifier(request: Request) -> BuilderKeyVerifier:
    return request.app.state.key_verifier


def get_artifact_store(request: Request) -> ArtifactStore:
    return request.app.state.artifact_store


def get_release_reader(request: Request) -> ReleaseManifestReader:
    return request.app.state.release_reader


def get_static_site(request: Request) -> StaticSite:
    return request.app.state.static_site
