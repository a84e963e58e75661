from __future__ import annotations

import json
import time
from types import SimpleNamespace

import pytest
import stripe

from seance_backend.db.enums import SubscriptionStatusEnum
from seance_backend.db.repositories.subscriptions import SubscriptionsRepository
from seance_backend.db.repositories.users import UsersRepository

EMAIL = "ghost@example.com"


def _subscription_event(event_type: str, *, status: str = "active", period_end: int | None = None) -> dict:
    return {
        "id": "evt_1",
        "type": event_type,
        "data": {
            "object": {
                "id": "sub_123",
                "customer": "cus_123",
                "status": status,
                "current_period_end": period_end or int(time.time()) + 86400,
                "cancel_at_period_end": False,
            }
        },
    }


@pytest.fixture()
def stripe_stubs(monkeypatch):
    retrieved: list[str] = []

    def fake_construct_event(payload, signature, secret):
        if signature != "t=1,v1=valid":
            raise stripe.SignatureVerificationError("No signatures found", signature)
        return json.loads(payload)

    def fake_retrieve(customer_id, **kwargs):
        retrieved.append(customer_id)
        return SimpleNamespace(id=customer_id, email=EMAIL)

    monkeypatch.setattr(stripe.Webhook, "construct_event", fake_construct_event)
    monkeypatch.setattr(stripe.Customer, "retrieve", fake_retrieve)
    return retrieved


def _post_event(client, event: dict, signature: str = "t=1,v1=valid"):
    return client.post(
        "/stripe/webhook",
        content=json.dumps(event).encode("utf-8"),
        headers={"Content-Type": "application/json", "Stripe-Signature": signature},
    )


def test_webhook_requires_signature_header(api_client, stripe_stubs):
    response = api_client.post("/stripe/webhook", json=_subscription_event("customer.subscription.created"))

    assert response.status_code == 400
    assert response.json() == {"detail": "Missing Stripe signature header."}


def test_webhook_rejects_invalid_signature(api_client, stripe_stubs):
    response = _post_event(api_client, _subscription_event("customer.subscription.created"), signature="bad")

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid Stripe signature."}


def test_subscription_created_is_stored_and_linked(api_client, db_session, stripe_stubs):
    user = UsersRepository(db_session).create(email=EMAIL)

    response = _post_event(api_client, _subscription_event("customer.subscription.created"))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert stripe_stubs == ["cus_123"]
    db_session.expire_all()
    subscription = SubscriptionsRepository(db_session).get(EMAIL)
    assert subscription.status == SubscriptionStatusEnum.active
    assert subscription.subscription_id == "sub_123"
    assert UsersRepository(db_session).get(user.id).stripe_customer_id == "cus_123"


def test_subscription_deleted_removes_record(api_client, db_session, stripe_stubs):
    _post_event(api_client, _subscription_event("customer.subscription.created"))

    response = _post_event(api_client, _subscription_event("customer.subscription.deleted", status="canceled"))

    assert response.status_code == 200
    db_session.expire_all()
    assert SubscriptionsRepository(db_session).get(EMAIL) is None


def test_unhandled_event_is_acknowledged(api_client, stripe_stubs):
    response = _post_event(api_client, {"id": "evt_2", "type": "invoice.paid", "data": {"object": {}}})

    assert response.status_code == 200
    assert stripe_stubs == []


def test_has_active_subscription_rules(db_session):
    repo = SubscriptionsRepository(db_session)
    now = time.time()
    repo.upsert(
        email=EMAIL,
        customer_id="cus_123",
        subscription_id="sub_123",
        status=SubscriptionStatusEnum.trialing,
        current_period_end=int(now) + 60,
        cancel_at_period_end=False,
    )
    assert repo.has_active(EMAIL, now=now)
    assert not repo.has_active(EMAIL, now=now + 120)

    repo.upsert(
        email=EMAIL,
        customer_id="cus_123",
        subscription_id="sub_123",
        status=SubscriptionStatusEnum.past_due,
        current_period_end=int(now) + 60,
        cancel_at_period_end=False,
    )
    assert not repo.has_active(EMAIL, now=now)
    assert not repo.has_active("nobody@example.com", now=now)


def test_subscription_status_endpoint(api_client, db_session, stripe_stubs):
    registered = api_client.post("/auth/register", json={"email": EMAIL, "password": "long enough"}).json()
    headers = {"Authorization": f"Bearer {registered['token']}"}

    before = api_client.get("/stripe/subscription", headers=headers)
    _post_event(api_client, _subscription_event("customer.subscription.updated", period_end=1893456000))
    after = api_client.get("/stripe/subscription", headers=headers)

    assert before.json() == {
        "hasSubscription": False,
        "status": None,
        "currentPeriodEnd": None,
        "cancelAtPeriodEnd": None,
    }
    assert after.json() == {
        "hasSubscription": True,
        "status": "active",
        "currentPeriodEnd": 1893456000,
        "cancelAtPeriodEnd": False,
    }
