"""Error taxonomy for the shortlink service.

Every error carries the HTTP status the transport layer maps it to, so route
handlers can raise and let the application-level handler render the response.

Error Hierarchy
===============
::
    ShortLinkError
    ├─ ValidationError      400  malformed input (caller's fault)
    ├─ DuplicateCodeError   409  code already taken at insert time
    ├─ NotFoundError        404  no mapping for the code
    ├─ ExpiredError         410  mapping exists but expired
    ├─ GenerationError      500  no code could be produced
    ├─ StoreError           500  durable store unreachable or failing
    └─ AccountingError      ---  click increment failed; logged, never surfaced
"""

__all__ = [
    "AccountingError",
    "DuplicateCodeError",
    "ExpiredError",
    "GenerationError",
    "NotFoundError",
    "ShortLinkError",
    "StoreError",
    "ValidationError",
]


class ShortLinkError(Exception):
    status_code: int = 500
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(ShortLinkError):
    status_code = 400
    default_detail = "Invalid request"


class DuplicateCodeError(ShortLinkError):
    status_code = 409
    default_detail = "Short code already exists"

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Short code '{code}' already exists")


class NotFoundError(ShortLinkError):
    status_code = 404
    default_detail = "Short URL not found"


class ExpiredError(ShortLinkError):
    status_code = 410
    default_detail = "Link expired"


class GenerationError(ShortLinkError):
    status_code = 500
    default_detail = "Code generation error"


class StoreError(ShortLinkError):
    status_code = 500
    default_detail = "Database error"


class AccountingError(ShortLinkError):
    def __init__(self, code: str, cause: BaseException | None = None) -> None:
        self.code = code
        self.cause = cause
        super().__init__(f"Click increment failed for '{code}': {cause}")
