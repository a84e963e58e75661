import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from seance_backend.auth.resolvers import build_session_resolver
from seance_backend.config import Settings, load_builder_config, settings
from seance_backend.db.base import init_db
from seance_backend.errors import ApiError
from seance_backend.routers import auth, billing, deploy, downloads, health, static_site, updates
from seance_backend.services.artifact_storage import build_artifact_store
from seance_backend.services.builder_keys import build_key_verifier
from seance_backend.services.releases import ReleaseManifestReader
from seance_backend.services.static_site import StaticSite

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    init_db()
    yield


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    app_settings = app_settings or settings

    # Credentials and storage are resolved up front so a bad config fails at startup.
    builder_config = load_builder_config(app_settings.BUILDER_CONFIG_PATH)
    artifact_store = build_artifact_store(app_settings)

    app = FastAPI(
        title="Seance Backend API",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
        docs_url="/ui",
    )
    app.state.settings = app_settings
    app.state.key_verifier = build_key_verifier(builder_config)
    app.state.artifact_store = artifact_store
    app.state.release_reader = ReleaseManifestReader(
        artifact_store,
        public_base_url=app_settings.public_base_url,
        artifact_patterns=app_settings.RELEASE_ARTIFACT_PATTERNS,
    )
    app.state.static_site = StaticSite(artifact_store)
    app.state.session_resolver = build_session_resolver(app_settings)

    allow_origins = sorted(set(app_settings.BACKEND_CORS_ORIGINS))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ApiError)
    async def api_error_handler(_request: Request, exc: ApiError) -> ORJSONResponse:
        return ORJSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    app.include_router(health.router)
    app.include_router(deploy.router)
    app.include_router(updates.router)
    app.include_router(auth.router)
    app.include_router(billing.router)
    app.include_router(downloads.router)
    app.include_router(static_site.router)

    logger.info(
        "Application configured",
        extra={
            "environment": app_settings.ENVIRONMENT,
            "storage_backend": app_settings.ARTIFACT_STORAGE_BACKEND,
            "auth_provider": app_settings.AUTH_PROVIDER,
        },
    )
    return app


app = create_app()
