"""AES-256-GCM encryption for stored Kalshi credentials.

Ciphertexts are stored as ``nonce_hex:ciphertext_hex`` (the GCM tag is the
tail of the ciphertext).
"""
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12


class CredentialCipher:
    """Encrypts and decrypts secrets with a 32-byte key given as 64 hex chars."""

    def __init__(self, key_hex: str):
        try:
            key = bytes.fromhex(key_hex)
        except ValueError as exc:
            raise ValueError("ENCRYPTION_KEY must be hex encoded") from exc
        if len(key) != 32:
            raise ValueError(
                "ENCRYPTION_KEY must be 32 bytes (64 hex characters); "
                "generate one with: openssl rand -hex 32"
            )
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return f"{nonce.hex()}:{ciphertext.hex()}"

    def decrypt(self, token: str) -> str:
        """Decrypt a ``nonce_hex:ciphertext_hex`` token.

        Raises:
            ValueError: If the token is malformed or fails authentication.
        """
        nonce_hex, sep, ciphertext_hex = token.partition(":")
        if not sep:
            raise ValueError("Invalid encrypted data format")
        try:
            plaintext = self._aead.decrypt(
                bytes.fromhex(nonce_hex), bytes.fromhex(ciphertext_hex), None
            )
        except (ValueError, InvalidTag) as exc:
            raise ValueError("Encrypted data could not be decrypted") from exc
        return plaintext.decode("utf-8")
