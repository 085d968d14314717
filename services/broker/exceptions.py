"""Remote broker API exceptions."""

from typing import Optional


class BrokerRequestError(Exception):
    """A broker REST call failed (transport, status, envelope or payload)."""

    def __init__(self, message: str, endpoint: str, status_code: Optional[int] = None,
                 error_code: Optional[int] = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.error_code = error_code

    def to_details(self) -> dict:
        return {
            "endpoint": self.endpoint,
            "status_code": self.status_code,
            "error_code": self.error_code,
        }
