"""Credential check and the explicit user session."""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from photo_share.domain.users import User

_logger = logging.getLogger(__name__)

USERS: tuple[User, ...] = (
    User(id="1", username="deadeye", display_name="Deadeye"),
    User(id="2", username="shackleton", display_name="Shackleton"),
    User(id="3", username="whitey", display_name="Whitey"),
    User(id="4", username="scooter", display_name="Scooter"),
)


@dataclass
class AuthService:
    """Validates credentials against the fixed group and a shared password."""

    password: str
    users: tuple[User, ...] = USERS

    def authenticate(self, username: str, password: str) -> User | None:
        """Return the matching user when the shared password is correct."""
        if not self.password or password != self.password:
            return None
        return self.get_by_username(username)

    def get_by_username(self, username: str) -> User | None:
        lowered = username.strip().lower()
        for user in self.users:
            if user.username.lower() == lowered:
                return user
        return None

    def get_by_id(self, user_id: str) -> User | None:
        for user in self.users:
            if user.id == user_id:
                return user
        return None


class SessionStore(Protocol):
    """Storage for the logged-in user between process runs."""

    def read(self) -> dict[str, object] | None:
        """Return the stored session payload, if any."""

    def write(self, payload: dict[str, object]) -> None:
        """Persist a session payload."""

    def remove(self) -> None:
        """Delete the stored session."""


@dataclass
class UserSession:
    """Holds the current user with explicit load/save/clear lifecycle hooks."""

    store: SessionStore
    user: User | None = field(default=None)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def load(self) -> User | None:
        """Restore the user from the store; a corrupt payload is discarded."""
        payload = self.store.read()
        if payload is None:
            self.user = None
            return None
        try:
            self.user = User(
                id=str(payload["id"]),
                username=str(payload["username"]),
                display_name=str(payload["displayName"]),
            )
        except (KeyError, TypeError):
            _logger.warning("Discarding malformed stored session")
            self.store.remove()
            self.user = None
        return self.user

    def save(self) -> None:
        """Persist the current user, or clear the store when logged out."""
        if self.user is None:
            self.store.remove()
            return
        self.store.write(self.user.to_dict())

    def clear(self) -> None:
        self.user = None
        self.store.remove()

    def login(self, auth_service: AuthService, username: str, password: str) -> bool:
        """Authenticate and persist the session on success."""
        user = auth_service.authenticate(username, password)
        if user is None:
            _logger.info("Login rejected for username=%s", username)
            return False
        self.user = user
        self.save()
        return True

    def logout(self) -> None:
        self.clear()
