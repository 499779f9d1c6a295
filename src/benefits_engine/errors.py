"""Error taxonomy shared by the workflow engine, the ledger and the API."""

from __future__ import annotations

from typing import Any


class BenefitsError(Exception):
    """Base class for expected, caller-facing failures."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context
        super().__init__(message)


class Unauthorized(BenefitsError):
    """No caller identity. Never says whether the target exists."""

    status_code = 401
    code = "UNAUTHORIZED"


class Forbidden(BenefitsError):
    """Valid identity but insufficient authority or wrong approval turn."""

    status_code = 403
    code = "FORBIDDEN"


class NotFound(BenefitsError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(BenefitsError):
    """Terminal state reached or decision already recorded at this level."""

    status_code = 409
    code = "CONFLICT"


class InvalidInput(BenefitsError):
    status_code = 400
    code = "INVALID_INPUT"
