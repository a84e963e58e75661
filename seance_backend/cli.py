from __future__ import annotations

import argparse
import base64
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

import uvicorn
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from seance_backend.config import settings
from seance_backend.services.builder_keys import hash_builder_key


def sign_payload(private_key_pem: bytes, payload: bytes) -> str:
    """Return the base64 Ed25519 signature sent as `X-Signature`."""
    key = serialization.load_pem_private_key(private_key_pem, password=None)
    if not isinstance(key, Ed25519PrivateKey):
        raise ValueError("Private key must be an Ed25519 key")
    return base64.b64encode(key.sign(payload)).decode("ascii")


def _serve(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "seance_backend.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.LOG_LEVEL.lower(),
    )
    return 0


def _hash_key(args: argparse.Namespace) -> int:
    print(hash_builder_key(args.secret))
    return 0


def _sign(args: argparse.Namespace) -> int:
    payload = Path(args.file).read_bytes()
    private_key_pem = Path(args.private_key).read_bytes()
    try:
        print(sign_payload(private_key_pem, payload))
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="seance-backend", description="Seance release and download backend.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP server.")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=3000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only).")
    serve.set_defaults(handler=_serve)

    hash_key = subparsers.add_parser("hash-key", help="Print the SHA-256 digest of a builder key for config.yml.")
    hash_key.add_argument("secret")
    hash_key.set_defaults(handler=_hash_key)

    sign = subparsers.add_parser("sign", help="Sign a deploy request body for the X-Signature header.")
    sign.add_argument("file", help="Exact request body that will be sent to /deploy.")
    sign.add_argument("--private-key", required=True, help="Ed25519 private key in PEM format.")
    sign.set_defaults(handler=_sign)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
