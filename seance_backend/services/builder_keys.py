from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
from collections.abc import Mapping, Sequence

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from seance_backend.config import BuilderAuthScheme, BuilderConfig, BuilderConfigError

logger = logging.getLogger(__name__)

BUILDER_KEY_HEADER = "x-builder-key"
SIGNATURE_HEADER = "x-signature"


class BuilderKeyError(RuntimeError):
    pass


def hash_builder_key(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def parse_public_key(text: str) -> Ed25519PublicKey:
    """Parse an Ed25519 public key in OpenSSH (`ssh-ed25519 AAAA...`) or PEM form."""
    data = text.strip().encode("utf-8")
    try:
        if data.startswith(b"ssh-"):
            key = serialization.load_ssh_public_key(data)
        elif data.startswith(b"-----BEGIN"):
            key = serialization.load_pem_public_key(data)
        else:
            raise BuilderConfigError("Public key must be in OpenSSH or PEM format")
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise BuilderConfigError(f"Unable to parse builder public key: {exc}") from exc

    if not isinstance(key, Ed25519PublicKey):
        raise BuilderConfigError("Builder public keys must be Ed25519 keys")
    return key


class BuilderKeyVerifier:
    scheme: BuilderAuthScheme
    header_name: str

    def verify(self, headers: Mapping[str, str], body: bytes) -> None:
        raise NotImplementedError


class SharedSecretVerifier(BuilderKeyVerifier):
    """Accepts a plaintext builder key whose SHA-256 digest is configured."""

    scheme = BuilderAuthScheme.shared_secret
    header_name = BUILDER_KEY_HEADER

    def __init__(self, key_hashes: Sequence[str]) -> None:
        if not key_hashes:
            raise BuilderConfigError("At least one builder key hash must be configured")
        self._key_hashes = frozenset(key_hashes)

    def verify(self, headers: Mapping[str, str], body: bytes) -> None:
        builder_key = headers.get(self.header_name)
        if not builder_key:
            raise BuilderKeyError("Missing builder key")

        digest = hash_builder_key(builder_key)
        matched = False
        for accepted in self._key_hashes:
            matched |= hmac.compare_digest(digest, accepted)
        if not matched:
            logger.warning("Invalid builder key (hash not found)")
            raise BuilderKeyError("Invalid builder key")


class SignatureVerifier(BuilderKeyVerifier):
    """Accepts a base64 Ed25519 signature over the exact raw request body."""

    scheme = BuilderAuthScheme.signature
    header_name = SIGNATURE_HEADER

    def __init__(self, public_keys: Sequence[Ed25519PublicKey]) -> None:
        if not public_keys:
            raise BuilderConfigError("At least one builder public key must be configured")
        self._public_keys = tuple(public_keys)

    def verify(self, headers: Mapping[str, str], body: bytes) -> None:
        encoded = headers.get(self.header_name)
        if not encoded:
            raise BuilderKeyError("Missing signature")
        try:
            signature = base64.b64decode(encoded.strip(), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise BuilderKeyError("Invalid signature") from exc

        for public_key in self._public_keys:
            try:
                public_key.verify(signature, body)
                return
            except InvalidSignature:
                continue
        logger.warning("Deploy signature did not verify against any configured key")
        raise BuilderKeyError("Invalid signature")


def build_key_verifier(config: BuilderConfig) -> BuilderKeyVerifier:
    if config.scheme == BuilderAuthScheme.signature:
        verifier: BuilderKeyVerifier = SignatureVerifier(
            [parse_public_key(item) for item in config.builder_public_keys]
        )
        count = len(config.builder_public_keys)
    else:
        verifier = SharedSecretVerifier(config.builder_key_hashes)
        count = len(config.builder_key_hashes)
    logger.info(
        "Loaded builder credentials",
        extra={"scheme": verifier.scheme.value, "count": count},
    )
    return verifier
