"""
Failure envelope: unified response classification.

Every error the catalog cache, the reconciler and the profile service can
produce is a subclass of `KnownError`. Each carries a `FailureKind` and the
HTTP status the API layer answers with, so the exception handler can turn it
into an `ApiResponse` envelope without guessing.

Response types:
- Success: Operation completed successfully
- KnownFailure: System knows why it failed
- UnknownFailure: System does not know why it failed
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"

    # Service failures
    EXTERNAL_API_ERROR = "external_api_error"
    WRITE_FAILED = "write_failed"
    STORE_UNAVAILABLE = "store_unavailable"
    SUBSCRIPTION_FAILED = "subscription_failed"

    # Unknown
    UNKNOWN = "unknown"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    SUCCESS = "success"
    KNOWN_FAILURE = "known_failure"
    UNKNOWN_FAILURE = "unknown_failure"


T = TypeVar("T")


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class ApiResponse(BaseModel, Generic[T]):
    """
    Universal response envelope for failures and wrapped results.

    Every failure is classified into one of the outcome types,
    so no error reaches the user unexplained.
    """

    outcome: OutcomeType = Field(
        ...,
        description="High-level classification of the result",
    )
    data: T | None = Field(
        default=None,
        description="Response data (present on success)",
    )
    failure: FailureDetail | None = Field(
        default=None,
        description="Failure details (present on non-success)",
    )

    @classmethod
    def known_failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ) -> "ApiResponse[Any]":
        """
        Create a known failure response.

        Use when the system knows exactly why the operation failed.
        Example: Set not found upstream, document write rejected.
        """
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
            ),
        )


UNKNOWN_FAILURE_MESSAGE = "Something went wrong and the cause is unknown. Please retry."


def create_unknown_failure(exception: Exception) -> ApiResponse[Any]:
    """
    Create an unknown failure response from an exception.

    The message is fixed; only the exception type is exposed as detail.
    """
    return ApiResponse(
        outcome=OutcomeType.UNKNOWN_FAILURE,
        failure=FailureDetail(
            kind=FailureKind.UNKNOWN,
            message=UNKNOWN_FAILURE_MESSAGE,
            detail=type(exception).__name__,
            suggestion="If this persists, please report the issue.",
        ),
    )


# Standard exception types that map to known failures


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.known_failure(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class UpstreamError(KnownError):
    """
    The catalog API failed: transport error, timeout, non-2xx status,
    malformed JSON, or a payload without the expected field.
    """

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.EXTERNAL_API_ERROR,
            message=message,
            detail=detail,
            suggestion="The card catalog is unavailable right now. Try again later.",
            status_code=502,
        )


class NotFoundError(KnownError):
    """A requested resource (catalog set, user profile) does not exist."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=message,
            detail=detail,
            suggestion="Check the identifier and try again.",
            status_code=404,
        )


class WriteError(KnownError):
    """A write to the document store failed. Nothing was saved."""

    def __init__(self, message: str = "The change could not be saved.", detail: str | None = None):
        super().__init__(
            kind=FailureKind.WRITE_FAILED,
            message=message,
            detail=detail,
            suggestion="Retry the change.",
            status_code=503,
        )


class StoreUnavailableError(KnownError):
    """A document could not be read from the store."""

    def __init__(
        self,
        message: str = "Saved data is unavailable right now.",
        detail: str | None = None,
    ):
        super().__init__(
            kind=FailureKind.STORE_UNAVAILABLE,
            message=message,
            detail=detail,
            suggestion="Try again in a moment.",
            status_code=503,
        )


class SubscriptionError(KnownError):
    """
    A live document subscription reported an error.

    Recorded on the consumer rather than raised; the last delivered
    snapshot stays in effect.
    """

    def __init__(
        self,
        message: str = "Live updates for this collection are unavailable.",
        detail: str | None = None,
    ):
        super().__init__(
            kind=FailureKind.SUBSCRIPTION_FAILED,
            message=message,
            detail=detail,
            suggestion="Showing the last known data. Reload to reconnect.",
            status_code=503,
        )


class InvalidInputError(KnownError):
    """The request cannot be honoured as given (e.g. befriending yourself)."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message=message,
            detail=detail,
            status_code=400,
        )
