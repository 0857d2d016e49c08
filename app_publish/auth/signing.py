"""
Per-request signing primitives.

Backends in the RSA and HMAC families have no bearer token: every request
carries a signature over its canonicalized parameters instead.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Mapping, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..exceptions import CredentialError


def canonicalize_params(params: Mapping[str, object]) -> str:
    """
    Build the canonical string for a parameter mapping.

    Keys are sorted ascending and joined as ``k=v`` pairs with ``&``, so the
    result does not depend on insertion order.
    """
    return "&".join(f"{key}={params[key]}" for key in sorted(params))


def load_rsa_private_key(pem: Union[str, bytes]) -> rsa.RSAPrivateKey:
    """
    Parse a PEM-encoded RSA private key.

    Raises:
        CredentialError: If the key material is malformed or not RSA
    """
    data = pem.encode("utf-8") if isinstance(pem, str) else pem
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CredentialError(
            f"Malformed RSA private key: {e}",
            suggestion="Provide an unencrypted PEM-encoded RSA private key.",
        ) from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise CredentialError(
            f"Expected an RSA private key, got {type(key).__name__}",
            suggestion="Provide an unencrypted PEM-encoded RSA private key.",
        )
    return key


def rsa_sha256_sign(private_key: rsa.RSAPrivateKey, message: str) -> str:
    """Sign ``message`` with RSASSA-PKCS1-v1_5/SHA-256 and return base64."""
    signature = private_key.sign(
        message.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256()
    )
    return base64.b64encode(signature).decode("ascii")


def hmac_sha256_hex(secret: str, message: str) -> str:
    """Return the lowercase hex HMAC-SHA256 digest of ``message``."""
    return hmac.new(
        secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
    ).hexdigest()
