# Structured exception hierarchy for the trade synchronization engine

from typing import Dict, Any, Optional
from datetime import datetime, timezone


class TradeSyncException(Exception):
    """Base exception for all trade sync specific errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_payload(self) -> Dict[str, Any]:
        """Structured error payload returned by administrative operations"""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class TransientError(TradeSyncException):
    """Errors that recover on their own at the next scheduled or manual trigger"""
    retryable = True


class PermanentError(TradeSyncException):
    """Errors that need an operator fix before the operation can succeed"""
    retryable = False


class ConfigError(PermanentError):
    """Missing credentials, token or account identifier"""

    def __init__(self, message: str, config_field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.config_field = config_field
        if config_field:
            self.details.setdefault("config_field", config_field)


class AuthError(TransientError):
    """Remote authentication call failed"""


class SyncError(TransientError):
    """Remote trade-search call failed; no rows were written for the window"""

    def __init__(self, message: str, window: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.window = window or {}
        if window:
            self.details.setdefault("window", self.window)


class PersistError(TransientError):
    """Storage transaction failed for a non-duplicate reason; batch rolled back"""

    def __init__(self, message: str, operation: str, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.details.setdefault("operation", operation)


class OrderError(TransientError):
    """Order placement was rejected or could not reach the broker"""


class ContractSearchError(TransientError):
    """Contract lookup could not reach the broker or was rejected"""
