"""
Error taxonomy for the core.

Each error carries the HTTP status it maps to and a fixed, caller-safe
``detail``. Store messages and internal identifiers never reach ``detail``;
they go to the log and the exception chain instead.
"""


class SocialGraphError(Exception):
    status_code: int = 500
    detail: str = "Internal error"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class NotFound(SocialGraphError):
    """Referenced account, post, comment or edge does not exist."""
    status_code = 404
    detail = "Not found"


class Conflict(SocialGraphError):
    """Uniqueness violation: duplicate follow, duplicate like, taken handle."""
    status_code = 409
    detail = "Already exists"


class InvalidOperation(SocialGraphError):
    """Structurally nonsensical request, e.g. following yourself."""
    status_code = 400
    detail = "Invalid operation"


class Forbidden(SocialGraphError):
    """Authenticated, but not allowed to mutate this resource."""
    status_code = 403
    detail = "Forbidden"


class StoreUnavailable(SocialGraphError):
    """Store I/O failure. The only class a caller may retry."""
    status_code = 503
    detail = "Store unavailable"
