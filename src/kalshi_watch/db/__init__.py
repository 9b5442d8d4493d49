"""Database package: linked-account model, sessions and credential store."""
from kalshi_watch.db.encryption import CredentialCipher
from kalshi_watch.db.models import LinkedAccount
from kalshi_watch.db.sessions import create_db_engine, get_session, init_db
from kalshi_watch.db.store import CredentialStore, SqlCredentialStore

__all__ = [
    "CredentialCipher",
    "CredentialStore",
    "LinkedAccount",
    "SqlCredentialStore",
    "create_db_engine",
    "get_session",
    "init_db",
]
