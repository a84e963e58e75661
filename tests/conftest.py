import hashlib
import io
import os
import sys
import tempfile
from pathlib import Path

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import delete

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

BUILDER_SECRET = "test-builder-secret"

_TEST_DIR = Path(tempfile.mkdtemp(prefix="seance-tests-"))
_BUILDER_CONFIG = _TEST_DIR / "config.yml"
_BUILDER_CONFIG.write_text(
    "builder:\n"
    "  builder_key_hashes:\n"
    f"    - \"{hashlib.sha256(BUILDER_SECRET.encode('utf-8')).hexdigest()}\"\n",
    encoding="utf-8",
)

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DIR / 'test_seance.db'}")
os.environ.setdefault("BUILDER_CONFIG_PATH", str(_BUILDER_CONFIG))
os.environ.setdefault("DEPLOY_ROOT_DIR", str(_TEST_DIR / "deploy"))
os.environ.setdefault("ARTIFACT_STORAGE_BACKEND", "local")
os.environ.setdefault("AUTH_PROVIDER", "local")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_123")

from seance_backend.config import settings  # noqa: E402
from seance_backend.db.base import SessionLocal, init_db  # noqa: E402
from seance_backend.db.models import Subscription, User  # noqa: E402
from seance_backend.main import create_app  # noqa: E402
from seance_backend.services.artifact_storage import ObjectArtifactStore  # noqa: E402
from seance_backend.services.releases import ReleaseManifestReader  # noqa: E402
from seance_backend.services.static_site import StaticSite  # noqa: E402


@pytest.fixture()
def deploy_root(tmp_path: Path) -> Path:
    root = tmp_path / "deploy"
    root.mkdir()
    return root


@pytest.fixture()
def app_settings(deploy_root: Path):
    return settings.model_copy(update={"DEPLOY_ROOT_DIR": str(deploy_root)})


@pytest.fixture()
def db_session():
    init_db()
    session = SessionLocal()
    session.execute(delete(Subscription))
    session.execute(delete(User))
    session.commit()
    try:
        yield session
    finally:
        session.rollback()
        session.execute(delete(Subscription))
        session.execute(delete(User))
        session.commit()
        session.close()


@pytest.fixture()
def api_client(app_settings, db_session):
    with TestClient(create_app(app_settings)) as client:
        yield client


@pytest.fixture()
def builder_headers() -> dict[str, str]:
    return {"X-Builder-Key": BUILDER_SECRET}


class FakePaginator:
    def __init__(self, client: "FakeS3Client") -> None:
        self.client = client

    def paginate(self, *, Bucket, Prefix):
        keys = sorted(key for key in self.client.objects if key.startswith(Prefix))
        # Two pages to exercise the pagination loop.
        midpoint = len(keys) // 2
        for chunk in (keys[:midpoint], keys[midpoint:]):
            yield {"Contents": [{"Key": key} for key in chunk]} if chunk else {}


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 client used by ObjectArtifactStore."""

    def __init__(self) -> None:
        self.objects: dict[str, dict] = {}
        self.denied_keys: set[str] = set()

    def put_object(self, *, Bucket, Key, Body, ContentType, ACL):
        self.objects[Key] = {"Body": Body, "ContentType": ContentType, "ACL": ACL, "Bucket": Bucket}

    def get_object(self, *, Bucket, Key):
        if Key in self.denied_keys:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "GetObject")
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[Key]["Body"])}

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        return FakePaginator(self)

    def delete_objects(self, *, Bucket, Delete):
        for item in Delete["Objects"]:
            self.objects.pop(item["Key"], None)


@pytest.fixture()
def s3_client() -> FakeS3Client:
    return FakeS3Client()


CDN_ENDPOINT = "https://seance.nyc3.cdn.digitaloceanspaces.com"


@pytest.fixture()
def object_storage_client(app_settings, db_session, s3_client):
    app = create_app(app_settings)
    store = ObjectArtifactStore(client=s3_client, bucket="seance", prefix="prod", cdn_endpoint=CDN_ENDPOINT)
    app.state.artifact_store = store
    app.state.release_reader = ReleaseManifestReader(
        store,
        public_base_url=app_settings.public_base_url,
        artifact_patterns=app_settings.RELEASE_ARTIFACT_PATTERNS,
    )
    app.state.static_site = StaticSite(store)
    with TestClient(app) as client:
        yield client
