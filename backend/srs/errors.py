"""Errors raised by the review engine."""


class ReviewError(Exception):
    """Base class for review engine errors."""


class NotFoundError(ReviewError):
    """A review card, child or other referenced row does not exist."""

    def __init__(self, kind: str, ident: int) -> None:
        super().__init__(f"{kind} {ident} not found")
        self.kind = kind
        self.ident = ident


class InvalidResultError(ReviewError, ValueError):
    """A grading result outside again/hard/good/easy."""

    def __init__(self, result: object) -> None:
        super().__init__(f"Invalid review result: {result!r}")
        self.result = result


class PersistenceError(ReviewError):
    """Writing a graded card failed; nothing was committed and the call may be retried."""


class DuplicateReviewError(PersistenceError):
    """Another request created the same review card first."""
