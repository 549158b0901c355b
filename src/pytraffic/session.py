"""Advisory dashboard sign-in state.

The signed-in flag is a convenience gate for the dashboard, not an
authentication boundary. It is kept in an explicit :class:`SessionContext`
and mirrored to a key/value :class:`SessionStore` so it survives restarts.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from pytraffic._constants import DEFAULT_DASHBOARD_PASSWORD, DEFAULT_DASHBOARD_USERNAME, SESSION_USER_KEY
from pytraffic.config import TrafficConfig
from pytraffic.exceptions import TrafficAuthenticationError

_logger = logging.getLogger(__name__)

MISSING_CREDENTIALS_MESSAGE = "Username and password are required."
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials."


class SessionStore(Protocol):
    """String key/value persistence for the session context."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemorySessionStore:
    """Process-local store; forgets everything on exit."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class FileSessionStore:
    """Keeps all keys in one JSON object on disk.

    A missing or unreadable file behaves like an empty store.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            _logger.debug("Session file unreadable path=%s", self._path, exc_info=True)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(key): value for key, value in data.items() if isinstance(value, str)}

    def _dump(self, values: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(values, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self._path)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            values = self._load()
            values[key] = value
            self._dump(values)

    def remove(self, key: str) -> None:
        with self._lock:
            values = self._load()
            if values.pop(key, None) is not None:
                self._dump(values)


class SignedInUser(BaseModel):
    """Persisted form of the signed-in user."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    username: str

    @field_validator("username")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("username must not be empty")
        return value


class SessionContext:
    """Holds the signed-in user and keeps the store in sync.

    Parameters
    ----------
    store : SessionStore
        Where the user is persisted under ``simple_user``.
    username, password : str
        The single credential pair the dashboard accepts.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        username: str = DEFAULT_DASHBOARD_USERNAME,
        password: str = DEFAULT_DASHBOARD_PASSWORD,
    ) -> None:
        self._store = store
        self._expected_username = username
        self._expected_password = password
        self._user: SignedInUser | None = None

    @classmethod
    def from_config(cls, config: TrafficConfig, store: SessionStore | None = None) -> SessionContext:
        if store is None:
            store = FileSessionStore(config.session_file) if config.session_file else MemorySessionStore()
        return cls(store, username=config.dashboard_username, password=config.dashboard_password)

    @property
    def user(self) -> SignedInUser | None:
        return self._user

    @property
    def is_signed_in(self) -> bool:
        return self._user is not None

    @property
    def username(self) -> str | None:
        return self._user.username if self._user is not None else None

    def boot(self) -> SignedInUser | None:
        """Restore the persisted user, ignoring missing or corrupt values."""
        try:
            raw = self._store.get(SESSION_USER_KEY)
        except Exception:
            _logger.debug("Session store read failed", exc_info=True)
            raw = None
        user: SignedInUser | None = None
        if raw:
            try:
                user = SignedInUser.model_validate_json(raw)
            except ValidationError:
                _logger.debug("Ignoring corrupt persisted session value")
        self._user = user
        return user

    def sign_in(self, username: str, password: str) -> SignedInUser:
        """Check the credential pair and persist the user.

        Raises :class:`TrafficAuthenticationError` without touching state
        when a field is empty or the pair is wrong.
        """
        name = (username or "").strip()
        if not name or not password:
            raise TrafficAuthenticationError(MISSING_CREDENTIALS_MESSAGE)
        if name != self._expected_username or password != self._expected_password:
            raise TrafficAuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        user = SignedInUser(username=name)
        self._user = user
        try:
            self._store.set(SESSION_USER_KEY, user.model_dump_json())
        except Exception:
            _logger.debug("Session store write failed", exc_info=True)
        return user

    def sign_out(self) -> None:
        self._user = None
        try:
            self._store.remove(SESSION_USER_KEY)
        except Exception:
            _logger.debug("Session store remove failed", exc_info=True)
