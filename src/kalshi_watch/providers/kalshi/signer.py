"""Kalshi request signing (RSA-PSS over timestamp + method + path)."""
import base64
import hashlib
import logging
import time

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from kalshi_watch.providers.core.exceptions import RequestSigningError
from kalshi_watch.schemas import Credentials

logger = logging.getLogger(__name__)

ACCESS_KEY_HEADER = "KALSHI-ACCESS-KEY"
SIGNATURE_HEADER = "KALSHI-ACCESS-SIGNATURE"
TIMESTAMP_HEADER = "KALSHI-ACCESS-TIMESTAMP"

_BODY_METHODS = frozenset({"POST", "PUT"})


def signing_message(
    timestamp_ms: str, method: str, path: str, body: bytes | None = None
) -> bytes:
    """Build the exact bytes that get signed.

    The query string is not part of the signed path. For POST/PUT with a body,
    the hex SHA-256 of the body bytes is appended.
    """
    method = method.upper()
    message = timestamp_ms + method + path.split("?", 1)[0]
    if body and method in _BODY_METHODS:
        message += hashlib.sha256(body).hexdigest()
    return message.encode("utf-8")


def _load_private_key(pem: str) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    except (ValueError, TypeError) as exc:
        raise RequestSigningError("Private key could not be loaded") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise RequestSigningError("Private key is not an RSA key")
    return key


def sign_request(
    method: str,
    path: str,
    credentials: Credentials,
    body: bytes | None = None,
    *,
    timestamp_ms: int | None = None,
) -> dict[str, str]:
    """Produce Kalshi authentication headers for one request.

    Args:
        method: HTTP method (GET, POST, ...).
        path: Request path, e.g. "/trade-api/v2/portfolio/positions".
        credentials: API key and PEM private key.
        body: Serialized request body, exactly as it will be sent.
        timestamp_ms: Override the signing timestamp (defaults to now).

    Returns:
        The access-key, signature (base64) and timestamp headers.
    """
    ts = str(timestamp_ms if timestamp_ms is not None else int(time.time() * 1000))
    key = _load_private_key(credentials.private_key.get_secret_value())
    message = signing_message(ts, method, path, body)
    signature = key.sign(
        message,
        padding.PSS(
            mgf=padding.MGF1(hashes.SHA256()),
            salt_length=padding.PSS.DIGEST_LENGTH,
        ),
        hashes.SHA256(),
    )
    logger.debug("Signed %s %s at %s", method.upper(), path, ts)
    return {
        ACCESS_KEY_HEADER: credentials.api_key,
        SIGNATURE_HEADER: base64.b64encode(signature).decode("ascii"),
        TIMESTAMP_HEADER: ts,
    }
