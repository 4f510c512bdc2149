"""
Accounts and sessions.

A signed-in user is an explicit AuthSession (token + account snapshot).
Where sessions are kept is up to the injected SessionStore: memory for a
single process, a JSON file to survive restarts.
"""
import json
import logging
import secrets
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol

from passlib.context import CryptContext

from .errors import AuthError
from .gateway import AccountGateway
from .mappers import account_from_row
from .schemas import Account

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

# Profile fields a None value clears instead of leaving untouched
CLEARABLE_PROFILE_FIELDS = ("avatar",)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


@dataclass
class AuthSession:
    """The signed-in account and the token that identifies it"""
    token: str
    account: Account


class SessionStore(Protocol):
    """Persistence for session snapshots, keyed by token"""

    def load(self, token: str) -> Optional[Dict[str, Any]]:
        ...

    def save(self, token: str, data: Dict[str, Any]) -> None:
        ...

    def clear(self, token: str) -> None:
        ...


class InMemorySessionStore:
    def __init__(self):
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def load(self, token: str) -> Optional[Dict[str, Any]]:
        data = self._sessions.get(token)
        return dict(data) if data is not None else None

    def save(self, token: str, data: Dict[str, Any]) -> None:
        self._sessions[token] = dict(data)

    def clear(self, token: str) -> None:
        self._sessions.pop(token, None)


class JsonFileSessionStore:
    """Sessions mirrored to a JSON file ({token: account})"""

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, sessions: Dict[str, Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(sessions, f, indent=2)

    def load(self, token: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._read().get(token)

    def save(self, token: str, data: Dict[str, Any]) -> None:
        with self._lock:
            sessions = self._read()
            sessions[token] = data
            self._write(sessions)

    def clear(self, token: str) -> None:
        with self._lock:
            sessions = self._read()
            if sessions.pop(token, None) is not None:
                self._write(sessions)


class AuthService:
    """
    Signup, login, logout and profile edits.

    Usage:
        auth = AuthService(AccountGateway(db), store)
        session = auth.login("doc@example.com", "secret")
        session = auth.update_profile(session, {"first_name": "Asha"})
        auth.logout(session)
    """

    def __init__(self, accounts: AccountGateway, store: SessionStore):
        self.accounts = accounts
        self.store = store

    def signup(self, email: str, password: str, first_name: str = "", last_name: str = "") -> AuthSession:
        """Create a 'user' account and sign it in."""
        self.accounts.create({
            "email": email.strip(),
            "password_hash": get_password_hash(password),
            "first_name": first_name or "",
            "last_name": last_name or "",
            "role": "user",
        })
        return self.login(email, password)

    def login(self, email: str, password: str) -> AuthSession:
        row = self.accounts.get_by_email(email)
        if row is None or not verify_password(password, row["password_hash"]):
            raise AuthError("Invalid email or password")
        return self._open(account_from_row(row))

    def restore(self, token: str) -> Optional[AuthSession]:
        """
        Rebuild a session from the store, refreshed from the accounts
        table. Returns None for unknown tokens or deleted accounts.
        """
        if not token:
            return None
        data = self.store.load(token)
        if data is None:
            return None
        row = self.accounts.get_by_email(data.get("email", ""))
        if row is None:
            self.store.clear(token)
            return None
        return AuthSession(token=token, account=account_from_row(row))

    def logout(self, session: AuthSession) -> None:
        self.store.clear(session.token)
        logger.info("Account %s signed out", session.account.id)

    def update_profile(self, session: AuthSession, changes: Mapping[str, Any]) -> AuthSession:
        """
        Apply the fields present in `changes`.

        The role is kept unless one is given, and names are never blanked.
        A None avatar clears it.
        """
        updates = {k: v for k, v in changes.items() if v is not None or k in CLEARABLE_PROFILE_FIELDS}
        if updates.get("role") is None:
            updates["role"] = session.account.role
        row = self.accounts.update(session.account.id, updates)
        updated = AuthSession(token=session.token, account=account_from_row(row))
        self.store.save(updated.token, updated.account.model_dump(mode="json"))
        return updated

    def _open(self, account: Account) -> AuthSession:
        session = AuthSession(token=secrets.token_urlsafe(32), account=account)
        self.store.save(session.token, account.model_dump(mode="json"))
        logger.info("Account %s signed in", account.id)
        return session
