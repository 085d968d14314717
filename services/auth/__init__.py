"""Broker session management: token acquisition, refresh and account selection."""

from .service import AuthService
from .session_manager import SessionManager
from .models import AuthStatus, SessionSnapshot

__all__ = [
    "AuthService",
    "SessionManager",
    "AuthStatus",
    "SessionSnapshot",
]
