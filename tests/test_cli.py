from __future__ import annotations

import base64

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from seance_backend import cli
from seance_backend.services.builder_keys import hash_builder_key


def test_hash_key_prints_digest(capsys):
    assert cli.main(["hash-key", "ci-secret"]) == 0

    assert capsys.readouterr().out.strip() == hash_builder_key("ci-secret")


def test_sign_produces_verifiable_signature(tmp_path, capsys):
    private_key = Ed25519PrivateKey.generate()
    key_path = tmp_path / "builder.pem"
    key_path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    body_path = tmp_path / "body.json"
    body_path.write_bytes(b'{"files": []}')

    assert cli.main(["sign", str(body_path), "--private-key", str(key_path)]) == 0

    signature = base64.b64decode(capsys.readouterr().out.strip())
    private_key.public_key().verify(signature, b'{"files": []}')


def test_serve_runs_uvicorn(monkeypatch):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

    assert cli.main(["serve", "--port", "8080"]) == 0

    assert calls[0][0] == "seance_backend.main:app"
    assert calls[0][1]["port"] == 8080
