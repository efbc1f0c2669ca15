"""
Stillhouse Ledger - Error Taxonomy
===================================

Every failure the engine reports to its caller is one of five typed errors.
Each carries a registered code so callers (the API layer, batch jobs) can
decide on HTTP status and retry policy without string matching.

RULE: A raised LedgerError means nothing was written.
      Validation always happens before the unit of work writes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


# =============================================================================
# ERROR CATEGORIES
# =============================================================================

class ErrorCategory(str, Enum):
    """Error category classification."""
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CAPACITY = "CAPACITY"
    PROOF_TRANSITION = "PROOF_TRANSITION"
    CONFLICT = "CONFLICT"


@dataclass(frozen=True)
class ErrorCodeInfo:
    """Information about an error code."""

    code: str
    category: ErrorCategory
    http_status: int
    is_retryable: bool
    description: str


ERROR_CODES: dict[str, ErrorCodeInfo] = {
    # ========== VALIDATION ==========
    "VAL_INVALID_NUMBER": ErrorCodeInfo(
        code="VAL_INVALID_NUMBER",
        category=ErrorCategory.VALIDATION,
        http_status=422,
        is_retryable=False,
        description="Numeric input is missing, non-numeric or a float",
    ),
    "VAL_OUT_OF_RANGE": ErrorCodeInfo(
        code="VAL_OUT_OF_RANGE",
        category=ErrorCategory.VALIDATION,
        http_status=422,
        is_retryable=False,
        description="Numeric input outside its allowed range",
    ),
    "VAL_MISSING_FIELD": ErrorCodeInfo(
        code="VAL_MISSING_FIELD",
        category=ErrorCategory.VALIDATION,
        http_status=422,
        is_retryable=False,
        description="A required field is absent",
    ),
    "VAL_INVALID_STATE": ErrorCodeInfo(
        code="VAL_INVALID_STATE",
        category=ErrorCategory.VALIDATION,
        http_status=422,
        is_retryable=False,
        description="Requested state contradicts container quantities",
    ),

    # ========== NOT FOUND ==========
    "NF_CONTAINER": ErrorCodeInfo(
        code="NF_CONTAINER",
        category=ErrorCategory.NOT_FOUND,
        http_status=404,
        is_retryable=False,
        description="Container not found for this owner",
    ),
    "NF_CONTAINER_KIND": ErrorCodeInfo(
        code="NF_CONTAINER_KIND",
        category=ErrorCategory.NOT_FOUND,
        http_status=404,
        is_retryable=False,
        description="Container kind not found for this owner",
    ),
    "NF_TRANSACTION": ErrorCodeInfo(
        code="NF_TRANSACTION",
        category=ErrorCategory.NOT_FOUND,
        http_status=404,
        is_retryable=False,
        description="Transaction not found for this owner",
    ),

    # ========== DOMAIN ==========
    "CAP_EXCEEDED": ErrorCodeInfo(
        code="CAP_EXCEEDED",
        category=ErrorCategory.CAPACITY,
        http_status=409,
        is_retryable=False,
        description="Operation would exceed the container kind capacity",
    ),
    "PROOF_TRANSITION": ErrorCodeInfo(
        code="PROOF_TRANSITION",
        category=ErrorCategory.PROOF_TRANSITION,
        http_status=409,
        is_retryable=False,
        description="Proof-down target is not lower than the current proof",
    ),

    # ========== CONFLICT ==========
    "CONFLICT_LOCK_TIMEOUT": ErrorCodeInfo(
        code="CONFLICT_LOCK_TIMEOUT",
        category=ErrorCategory.CONFLICT,
        http_status=409,
        is_retryable=True,
        description="Timed out waiting for a container lock",
    ),
    "CONFLICT_CONCURRENT_UPDATE": ErrorCodeInfo(
        code="CONFLICT_CONCURRENT_UPDATE",
        category=ErrorCategory.CONFLICT,
        http_status=409,
        is_retryable=True,
        description="The backing store rejected a concurrent modification",
    ),
}


def get_error_info(code: str) -> ErrorCodeInfo:
    """Get error info for a code, defaulting to a non-retryable validation error."""
    return ERROR_CODES.get(code, ErrorCodeInfo(
        code=code,
        category=ErrorCategory.VALIDATION,
        http_status=422,
        is_retryable=False,
        description=f"Unknown error: {code}",
    ))


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LedgerError(Exception):
    """Base class for every error the engine reports to its caller."""

    default_code = "VAL_INVALID_NUMBER"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    @property
    def info(self) -> ErrorCodeInfo:
        return get_error_info(self.code)

    @property
    def is_retryable(self) -> bool:
        return self.info.is_retryable

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses. Decimals become strings."""
        return {
            "code": self.code,
            "message": self.message,
            "details": {k: str(v) if v is not None else None for k, v in self.details.items()},
        }


class ValidationError(LedgerError):
    """Malformed or out-of-range input."""
    default_code = "VAL_INVALID_NUMBER"


class NotFoundError(LedgerError):
    """Referenced entity is absent or not owned by the caller."""
    default_code = "NF_CONTAINER"


class CapacityExceededError(LedgerError):
    """Operation would push a container past its kind capacity."""
    default_code = "CAP_EXCEEDED"


class InvalidProofTransitionError(LedgerError):
    """Proof-down target is not below the current proof."""
    default_code = "PROOF_TRANSITION"


class ConflictError(LedgerError):
    """Concurrent modification or lock timeout. Safe to retry."""
    default_code = "CONFLICT_LOCK_TIMEOUT"
