"""Linked-account credential store.

The watcher engine only needs ``get_credentials``; linking and unlinking are
used by the account routes.
"""
import logging
from typing import Protocol

from sqlalchemy.engine import Engine

from kalshi_watch.db.encryption import CredentialCipher
from kalshi_watch.db.models import LinkedAccount, utcnow
from kalshi_watch.db.sessions import get_session
from kalshi_watch.schemas import Credentials

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Lookup of Kalshi credentials by user id."""

    def get_credentials(self, user_id: str) -> Credentials | None:
        ...


class SqlCredentialStore:
    """CredentialStore backed by the ``linkedaccount`` table."""

    def __init__(self, engine: Engine, cipher: CredentialCipher):
        self._engine = engine
        self._cipher = cipher

    def get_credentials(self, user_id: str) -> Credentials | None:
        """Return decrypted credentials for an active linked account, else None."""
        with get_session(self._engine) as session:
            account = session.get(LinkedAccount, user_id)
            if account is None or not account.is_active:
                return None
            api_key_encrypted = account.api_key_encrypted
            private_key_encrypted = account.private_key_encrypted
        try:
            return Credentials(
                api_key=self._cipher.decrypt(api_key_encrypted),
                private_key=self._cipher.decrypt(private_key_encrypted),
            )
        except ValueError as exc:
            logger.warning("Stored credentials for %s are unreadable: %s", user_id, exc)
            return None

    def link(self, user_id: str, api_key: str, private_key: str) -> None:
        """Store (or replace) the credentials for ``user_id``."""
        with get_session(self._engine) as session:
            account = session.get(LinkedAccount, user_id)
            if account is None:
                account = LinkedAccount(
                    user_id=user_id,
                    api_key_encrypted=self._cipher.encrypt(api_key),
                    private_key_encrypted=self._cipher.encrypt(private_key),
                )
            else:
                account.api_key_encrypted = self._cipher.encrypt(api_key)
                account.private_key_encrypted = self._cipher.encrypt(private_key)
                account.is_active = True
                account.updated_at = utcnow()
            session.add(account)
        logger.info("Linked Kalshi account for %s", user_id)

    def unlink(self, user_id: str) -> bool:
        """Deactivate the linked account. Returns False if none was active."""
        with get_session(self._engine) as session:
            account = session.get(LinkedAccount, user_id)
            if account is None or not account.is_active:
                return False
            account.is_active = False
            account.updated_at = utcnow()
            session.add(account)
        logger.info("Unlinked Kalshi account for %s", user_id)
        return True
