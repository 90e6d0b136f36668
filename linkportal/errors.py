"""
Error taxonomy for the portal.

Every failure a handler can report is a PortalError; main.py turns it into
a JSON body with ok=false and the matching status code. Messages are
client-safe: no paths, OS errors or tracebacks.
"""
from typing import Any, Dict, Optional


class PortalError(Exception):
    http_status: int = 500
    default_message: Optional[str] = "internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message if message is not None else self.default_message
        super().__init__(self.message or self.__class__.__name__)

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"ok": False}
        if self.message:
            body["message"] = self.message
        return body


class InvalidInput(PortalError):
    http_status = 400
    default_message = "invalid input"


class InvalidUrl(PortalError):
    http_status = 400
    default_message = "invalid url"


class NotFound(PortalError):
    http_status = 404
    default_message = "not found"


class CooldownActive(PortalError):
    """A visitor claimed too recently. Carries seconds until the next claim."""

    http_status = 429
    default_message = "claim cooldown active"

    def __init__(self, retry_after: int):
        super().__init__()
        self.retry_after = retry_after

    def to_response(self) -> Dict[str, Any]:
        return {"ok": False, "retryAfter": self.retry_after}


class RateLimited(PortalError):
    http_status = 429
    default_message = "Too many attempts. Try again later."


class Unauthorized(PortalError):
    http_status = 401
    default_message = "unauthorized"


class StorageFailure(PortalError):
    http_status = 503
    default_message = "storage unavailable"


class PayloadTooLarge(PortalError):
    http_status = 413
    default_message = "payload too large"
