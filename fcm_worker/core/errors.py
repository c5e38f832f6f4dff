"""Application-level exception types.

Domain errors shared by the throttle, the store adapters, the queue handler
and the HTTP layer. Every error carries a stable machine-readable code so
logs and API responses stay consistent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NotRequired, TypedDict

if TYPE_CHECKING:
    from fcm_worker.adapters.rate_limit.base import AcquireOutcome


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    decays_at: int
    remaining: int
    key_hash: str
    error_type: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class StoreUnavailableError(AppError):
    """Raised when the shared store cannot evaluate the window procedure.

    Covers connection loss, timeouts and script errors. The throttle never
    retries these and never reports them as "not allowed".
    """


@dataclass
class LimiterTimeoutError(AppError):
    """Raised when a blocking throttle run hits its deadline without a slot.

    Attributes:
        outcome: Last acquire outcome observed before giving up.
    """

    outcome: AcquireOutcome | None = None


@dataclass
class ThrottledError(AppError):
    """Raised by the queue handler when a push is rejected by the throttle.

    Failing the invocation makes the queue redeliver the record later.
    """

    outcome: AcquireOutcome | None = None
