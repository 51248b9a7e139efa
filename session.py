"""
Login session for the two static roles.

A Session loads its state from a SessionStore when created and saves it back
after every change, so the backing storage can be swapped freely.
"""
import json
import logging
import os
from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "sipena25")


class Role(str, Enum):
    admin = "admin"
    guest = "guest"


class SessionState(BaseModel):
    isAuthenticated: bool = False
    userRole: Optional[Role] = None


class SessionStore(Protocol):
    def load(self) -> Optional[str]: ...

    def save(self, raw: str) -> None: ...

    def clear(self) -> None: ...


class MemorySessionStore:
    def __init__(self, raw: Optional[str] = None):
        self.raw = raw

    def load(self) -> Optional[str]:
        return self.raw

    def save(self, raw: str) -> None:
        self.raw = raw

    def clear(self) -> None:
        self.raw = None


class Session:
    def __init__(self, store: SessionStore):
        self.store = store
        self.state = SessionState()
        raw = store.load()
        if raw:
            try:
                self.state = SessionState(**json.loads(raw))
            except (ValueError, TypeError, ValidationError) as e:
                logger.error("Error loading auth data: %s", e)
                store.clear()
                self.state = SessionState()

    @property
    def is_authenticated(self) -> bool:
        return self.state.isAuthenticated

    @property
    def role(self) -> Optional[Role]:
        return self.state.userRole

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role == Role.admin

    def _set(self, authenticated: bool, role: Optional[Role]) -> None:
        self.state = SessionState(isAuthenticated=authenticated, userRole=role)
        self.store.save(self.state.model_dump_json())

    def login(self, username: str, password: str) -> bool:
        if username == ADMIN_USERNAME and password == ADMIN_PASSWORD:
            self._set(True, Role.admin)
            logger.info("Admin logged in")
            return True
        logger.warning("Failed login attempt for %r", username)
        return False

    def login_as_guest(self) -> None:
        self._set(True, Role.guest)

    def logout(self) -> None:
        self._set(False, None)
