import base64
import hashlib

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from kalshi_watch.providers.core.exceptions import RequestSigningError
from kalshi_watch.providers.kalshi.signer import (ACCESS_KEY_HEADER,
                                                  SIGNATURE_HEADER,
                                                  TIMESTAMP_HEADER,
                                                  sign_request,
                                                  signing_message)
from kalshi_watch.schemas import Credentials


def test_signing_message_strips_query_string():
    message = signing_message("1700000000000", "get", "/trade-api/v2/portfolio/positions?limit=100")
    assert message == b"1700000000000GET/trade-api/v2/portfolio/positions"


def test_signing_message_appends_body_hash_for_post():
    body = b'{"count":5}'
    message = signing_message("1", "POST", "/trade-api/v2/portfolio/orders", body)
    assert message == ("1POST/trade-api/v2/portfolio/orders" + hashlib.sha256(body).hexdigest()).encode()


def test_signature_verifies_with_public_key(rsa_key, credentials):
    headers = sign_request("GET", "/trade-api/ws/v2", credentials, timestamp_ms=1700000000000)
    assert headers[ACCESS_KEY_HEADER] == "key-123"
    assert headers[TIMESTAMP_HEADER] == "1700000000000"

    # Raises InvalidSignature on mismatch.
    rsa_key.public_key().verify(
        base64.b64decode(headers[SIGNATURE_HEADER]),
        b"1700000000000GET/trade-api/ws/v2",
        padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=padding.PSS.DIGEST_LENGTH),
        hashes.SHA256(),
    )


def test_unreadable_key_raises_signing_error():
    credentials = Credentials(api_key="k", private_key="not a pem")
    with pytest.raises(RequestSigningError):
        sign_request("GET", "/trade-api/v2/markets/X", credentials)
