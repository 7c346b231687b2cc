"""Error kinds raised by the shortlink services.

Each error carries the HTTP status it maps to; ``shortlink.main`` installs a
single handler that renders them as ``{"detail": ...}`` responses. Messages
are safe to show to callers and never include raw storage errors.
"""

__all__ = [
    "ConflictError",
    "InternalError",
    "InvalidInputError",
    "NotFoundError",
    "ShortlinkError",
    "UnauthorizedError",
]


class ShortlinkError(Exception):
    status_code: int = 500
    default_detail: str = "Internal Server Error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidInputError(ShortlinkError):
    status_code = 400
    default_detail = "Invalid input"


class UnauthorizedError(ShortlinkError):
    status_code = 401
    default_detail = "Unauthorized"


class NotFoundError(ShortlinkError):
    status_code = 404
    default_detail = "Not found"


class ConflictError(ShortlinkError):
    status_code = 409
    default_detail = "Conflict"


class InternalError(ShortlinkError):
    status_code = 500
    default_detail = "Internal Server Error"
