from __future__ import annotations

import json
import time

import pytest

from seance_backend.db.enums import SubscriptionStatusEnum
from seance_backend.db.repositories.subscriptions import SubscriptionsRepository
from seance_backend.routers.downloads import SUBSCRIPTION_REQUIRED

EMAIL = "ghost@example.com"
DESKTOP = {
    "version": "2026.01.000",
    "released": "2026-01-11T00:00:00.000Z",
    "downloadUrl": "https://backend.seance.dev/updates/darwin-arm64/download-latest",
}


@pytest.fixture()
def version_document(deploy_root):
    (deploy_root / "releases").mkdir()
    (deploy_root / "releases" / "version.json").write_text(json.dumps({"desktop": DESKTOP}), encoding="utf-8")


@pytest.fixture()
def auth_headers(api_client):
    registered = api_client.post("/auth/register", json={"email": EMAIL, "password": "long enough"})
    return {"Authorization": f"Bearer {registered.json()['token']}"}


def _subscribe(db_session, status=SubscriptionStatusEnum.active):
    SubscriptionsRepository(db_session).upsert(
        email=EMAIL,
        customer_id="cus_1",
        subscription_id="sub_1",
        status=status,
        current_period_end=int(time.time()) + 3600,
        cancel_at_period_end=False,
    )


def test_latest_is_public(api_client, version_document):
    response = api_client.get("/downloads/latest")

    assert response.status_code == 200
    assert response.json() == DESKTOP


def test_latest_without_version_data(api_client):
    response = api_client.get("/downloads/latest")

    assert response.status_code == 500


def test_protected_requires_authentication(api_client, version_document):
    assert api_client.get("/downloads/protected").status_code == 401


def test_protected_requires_active_subscription(api_client, auth_headers, version_document):
    response = api_client.get("/downloads/protected", headers=auth_headers)

    assert response.status_code == 403
    assert response.json() == {"detail": SUBSCRIPTION_REQUIRED}


def test_protected_with_subscription(api_client, db_session, auth_headers, version_document):
    _subscribe(db_session)

    response = api_client.get("/downloads/protected", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["version"] == "2026.01.000"


def test_eligibility(api_client, db_session, auth_headers):
    anonymous = api_client.get("/downloads/eligibility").json()
    unsubscribed = api_client.get("/downloads/eligibility", headers=auth_headers).json()
    _subscribe(db_session, status=SubscriptionStatusEnum.trialing)
    subscribed = api_client.get("/downloads/eligibility", headers=auth_headers).json()

    assert anonymous == {"canDownload": False, "reason": "Authentication required"}
    assert unsubscribed == {"canDownload": False, "reason": SUBSCRIPTION_REQUIRED}
    assert subscribed == {"canDownload": True, "reason": None}
