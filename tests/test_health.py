def test_health(api_client):
    assert api_client.get("/health").json() == {"ok": True}


def test_health_db(api_client):
    assert api_client.get("/health/db").json() == {"db": "ok"}


def test_ping(api_client):
    body = api_client.get("/health/ping").json()

    assert body["message"] == "pong"
    assert body["timestamp"].endswith("Z")


def test_docs_served_at_ui(api_client):
    response = api_client.get("/ui")

    assert response.status_code == 200
    assert "swagger" in response.text.lower()
