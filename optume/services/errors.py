"""
Service-layer errors.

Each error knows the HTTP status it maps to; the handlers registered in
create_app() render them as ``{"error": <message>, **extra}``.
"""
from typing import Any, Dict, Optional


class ServiceError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class Unauthenticated(ServiceError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ServiceError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ServiceError):
    status_code = 404
    default_message = "Not found"


class ValidationError(ServiceError):
    status_code = 400
    default_message = "Invalid input"


class Conflict(ServiceError):
    # Duplicate likes surface as 400, matching the public contract
    status_code = 400
    default_message = "Conflict"


class QuotaExceeded(ServiceError):
    status_code = 429
    default_message = "Message limit reached"

    def __init__(self, message: Optional[str] = None, *, limit: int, current: int):
        super().__init__(message, limit=limit, current=current)
        self.limit = limit
        self.current = current
