"""Custom exception hierarchy for the ballot engine API."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class AppError(Exception):
    """Base application error with a stable machine-readable code."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error in the API standard shape."""
        return {"error": self.message, "code": self.code}


class NotFoundError(AppError):
    """Raised when a requested resource does not exist."""

    def __init__(self, resource: str) -> None:
        super().__init__(message=f"{resource} not found", code="NOT_FOUND", status_code=404)


class ForbiddenError(AppError):
    """Raised when the user lacks permission for the action."""

    def __init__(self, reason: str = "You don't have permission") -> None:
        super().__init__(message=reason, code="FORBIDDEN", status_code=403)


class ConflictError(AppError):
    """Raised on duplicate/conflicting operations."""

    def __init__(self, reason: str, code: str = "CONFLICT") -> None:
        super().__init__(message=reason, code=code, status_code=409)


class UniqueViolationError(ConflictError):
    """Raised when the store rejects a write on a unique constraint."""

    def __init__(self, reason: str = "Record already exists") -> None:
        super().__init__(reason, code="UNIQUE_VIOLATION")


class ForeignKeyViolationError(ConflictError):
    """Raised when the store rejects a write on a foreign key constraint."""

    def __init__(self, reason: str = "Referenced record is missing or still in use") -> None:
        super().__init__(reason, code="FOREIGN_KEY_VIOLATION")


class UnauthorizedError(AppError):
    """Raised when the caller is not authenticated."""

    def __init__(self, reason: str = "Unauthorized") -> None:
        super().__init__(message=reason, code="UNAUTHORIZED", status_code=401)


class InvalidInputError(AppError):
    """Raised for request payload or parameter validation issues."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=reason, code="INVALID_INPUT", status_code=422)


class StorageFailureError(AppError):
    """Raised when the store is unreachable or a write could not commit.

    Callers may retry the operation.
    """

    def __init__(self, reason: str = "Storage is temporarily unavailable") -> None:
        super().__init__(message=reason, code="STORAGE_FAILURE", status_code=503)


class ElectionNotActiveError(AppError):
    """Raised when ballots are cast outside an election's open window."""

    MESSAGES = {
        "inactive": "This election is not currently open for voting",
        "upcoming": "Voting for this election has not started yet",
        "ended": "Voting for this election has ended",
    }

    def __init__(self, state: str) -> None:
        self.state = str(state)
        super().__init__(
            message=self.MESSAGES.get(self.state, "This election is not accepting votes"),
            code="ELECTION_NOT_ACTIVE",
            status_code=409,
        )

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["state"] = self.state
        return payload


class InvalidSelectionError(AppError):
    """Raised when a selection does not match an approved candidate for its position."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=reason, code="INVALID_SELECTION", status_code=422)


class EmptyBallotError(AppError):
    """Raised when a ballot is submitted without any selections."""

    def __init__(self) -> None:
        super().__init__(
            message="Select at least one candidate before submitting your ballot",
            code="EMPTY_BALLOT",
            status_code=422,
        )


class DuplicateVoteError(AppError):
    """Raised when the voter already has a ballot on record for a position.

    This is the expected outcome of a double submit, not a fault.
    """

    def __init__(self, positions: Iterable[str] = ()) -> None:
        self.positions = sorted(set(positions))
        if self.positions:
            message = f"A vote is already on record for: {', '.join(self.positions)}"
        else:
            message = "A vote is already on record for this election"
        super().__init__(message=message, code="DUPLICATE_VOTE", status_code=409)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["positions"] = list(self.positions)
        return payload
