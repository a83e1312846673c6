"""
User-facing failures raised by the view-models.

Each carries the message the presentation layer shows in a blocking
notification; none of them leave local state modified.
"""


class CraftfolioError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvariantViolation(CraftfolioError):
    """An application rule blocked the action before any write was issued."""


class MutationFailed(CraftfolioError):
    """The backend rejected a write."""


class NotFound(CraftfolioError):
    """A resource that must exist was not found."""
