"""
Failure Explanation Envelope: unified response classification.

This module defines the response envelope that API endpoints use to
communicate failures to clients, and the typed errors raised by the game
services. Every user-visible failure is classified and explained.

INVARIANT: No raw store exception may reach a caller.

Every response that goes through the envelope is a failure:
- KnownFailure: System knows why it failed
- UnknownFailure: System does not know why it failed

Typed errors (all KnownError):
- NotFoundError: referenced team or character does not exist
- MalformedRecordError: a stored record failed validation
- SetupRequiredError: an id counter is missing, run setup first
- TransientFailureError: transaction contention, safe to retry
- ExpiredUndoError: the undo window has passed
- NoUndoAvailableError: nothing to undo
- InvalidInputError: malformed request data
- AdminAuthError: wrong or missing admin secret

"Already caught" is not an error. It is a normal catch outcome.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"
    MALFORMED_RECORD = "malformed_record"

    # Setup and lifecycle
    SETUP_REQUIRED = "setup_required"
    EXPIRED_UNDO = "expired_undo"
    NO_UNDO_AVAILABLE = "no_undo_available"

    # Access
    UNAUTHORIZED = "unauthorized"

    # Service failures
    TRANSIENT_FAILURE = "transient_failure"

    # Unknown
    UNKNOWN = "unknown"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    KNOWN_FAILURE = "known_failure"
    UNKNOWN_FAILURE = "unknown_failure"


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
    retryable: bool = Field(
        default=False,
        description="Whether repeating the same request may succeed",
    )


class ApiResponse(BaseModel):
    """
    Response envelope for failed API calls and admin actions.

    Successful calls return their response model directly. Failures are
    classified as known or unknown, so no failure reaches the user
    unexplained.
    """

    outcome: OutcomeType = Field(
        ...,
        description="High-level classification of the result",
    )
    failure: FailureDetail | None = Field(
        default=None,
        description="Failure details",
    )

    @classmethod
    def known_failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        retryable: bool = False,
    ) -> "ApiResponse":
        """
        Create a known failure response.

        Use when the system knows exactly why the operation failed.
        Example: Team not found, counters not initialized.
        """
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
                retryable=retryable,
            ),
        )


# Standard exception types that map to known failures


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    retryable: bool = False

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

    def to_response(self) -> ApiResponse:
        """Convert to an ApiResponse."""
        return ApiResponse.known_failure(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
            retryable=self.retryable,
        )


class NotFoundError(KnownError):
    """A referenced team or character does not exist."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        label = "Team" if collection == "teams" else "Character"
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"{label} '{doc_id}' was not found.",
            detail=f"{collection}/{doc_id}",
            suggestion="Refresh the list and pick an existing entry.",
            status_code=404,
        )


class MalformedRecordError(KnownError):
    """A stored record is missing required fields or holds bad values."""

    def __init__(self, doc_id: str, problems: tuple[str, ...]):
        self.doc_id = doc_id
        self.problems = problems
        super().__init__(
            kind=FailureKind.MALFORMED_RECORD,
            message=f"Record '{doc_id}' is malformed and cannot be used.",
            detail="; ".join(problems),
            suggestion="Fix the record from the admin portal.",
            status_code=422,
        )


class SetupRequiredError(KnownError):
    """An id counter is missing. One-time setup has not run."""

    def __init__(self, counter_name: str):
        self.counter_name = counter_name
        super().__init__(
            kind=FailureKind.SETUP_REQUIRED,
            message="The game database has not been initialized.",
            detail=f"Missing counter: {counter_name}",
            suggestion="Run the initialization step from the admin portal, then try again.",
            status_code=409,
        )


class TransientFailureError(KnownError):
    """The store could not commit. Nothing was written; retrying is safe."""

    retryable = True

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        super().__init__(
            kind=FailureKind.TRANSIENT_FAILURE,
            message=f"Could not complete {operation} right now.",
            detail=detail,
            suggestion="Please try again.",
            status_code=503,
        )


class ExpiredUndoError(KnownError):
    """A restore was attempted after the undo window closed."""

    def __init__(self, age_seconds: float, window_seconds: float):
        self.age_seconds = age_seconds
        self.window_seconds = window_seconds
        super().__init__(
            kind=FailureKind.EXPIRED_UNDO,
            message="The undo window has expired. This reset can no longer be undone.",
            detail=f"Snapshot age {age_seconds:.0f}s exceeds {window_seconds:.0f}s",
            status_code=410,
        )


class NoUndoAvailableError(KnownError):
    """There is no snapshot to restore."""

    def __init__(self) -> None:
        super().__init__(
            kind=FailureKind.NO_UNDO_AVAILABLE,
            message="There is no action to undo.",
            status_code=409,
        )


class InvalidInputError(KnownError):
    """Request data failed validation."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message=message,
            detail=detail,
            suggestion="Correct the highlighted fields and submit again.",
            status_code=400,
        )


class AdminAuthError(KnownError):
    """The admin secret was missing or wrong."""

    def __init__(self) -> None:
        super().__init__(
            kind=FailureKind.UNAUTHORIZED,
            message="Invalid admin password.",
            status_code=401,
        )


# =============================================================================
# FAILURE AUTHORITY BOUNDARY
# =============================================================================


# Unknown failures carry fixed text so exception messages never leak

UNKNOWN_FAILURE_MESSAGE = "Something went wrong and the cause is unknown. Please retry."
UNKNOWN_FAILURE_SUGGESTION = "If this persists, please report the issue."


def finalize_response(response: ApiResponse) -> ApiResponse:
    """
    Check a failure response before it leaves the authority boundary.

    Raises:
        ValueError: If the response carries no failure details
    """
    if response.failure is None:
        raise ValueError(f"{response.outcome.value} response must have failure details")
    return response


def create_unknown_failure(
    exception: Exception,
    include_type: bool = True,
) -> ApiResponse:
    """
    Create an unknown failure response from an exception.

    The message is fixed and cannot be customized.
    """
    detail = None
    if include_type:
        detail = f"{type(exception).__name__}"

    response = ApiResponse(
        outcome=OutcomeType.UNKNOWN_FAILURE,
        failure=FailureDetail(
            kind=FailureKind.UNKNOWN,
            message=UNKNOWN_FAILURE_MESSAGE,
            detail=detail,
            suggestion=UNKNOWN_FAILURE_SUGGESTION,
            retryable=True,
        ),
    )

    return finalize_response(response)


def create_known_failure(error: KnownError) -> ApiResponse:
    """Create a checked known failure response from a typed error."""
    return finalize_response(error.to_response())
