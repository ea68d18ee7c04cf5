"""Exceptions raised by lambda_awsutils.

Every error raised by this package derives from `AwsUtilsError` so callers
can decide a fail-open or fail-closed policy with a single `except` clause.
"""

__all__ = [
    "AwsUtilsError",
    "ValidationError",
    "FingerprintError",
    "CardinalityError",
    "SessionError",
    "StoreError",
    "EventParseError",
    "RouteBuildError",
    "RouteNotFoundError",
    "RequestParseError",
]

from typing import Optional

from aibs_informatics_core.exceptions import ApplicationException


class AwsUtilsError(ApplicationException):
    """Base exception for lambda_awsutils."""

    pass


class ValidationError(AwsUtilsError):
    """Configuration is missing required fields or is malformed."""

    pass


class FingerprintError(AwsUtilsError):
    """A message payload could not be reduced to a fingerprint."""

    pass


class CardinalityError(AwsUtilsError):
    """An event envelope did not contain exactly one record."""

    @classmethod
    def expected_one(cls, received: int, kind: str = "") -> "CardinalityError":
        kind = f"{kind} " if kind else ""
        return cls(f"expected only 1 {kind}event, received: {received}")


class SessionError(AwsUtilsError):
    """A connection or session to the backing store could not be established."""

    pass


class StoreError(AwsUtilsError):
    """The backing store rejected or failed a claim write.

    Attributes:
        fingerprint: The fingerprint (claim id) being written.
        table: The table the claim was written to.
    """

    def __init__(
        self, message: str, fingerprint: Optional[str] = None, table: Optional[str] = None
    ):
        super().__init__(message)
        self.fingerprint = fingerprint
        self.table = table


class EventParseError(AwsUtilsError):
    """An event payload could not be parsed."""

    pass


class RouteBuildError(AwsUtilsError):
    """A route could not be constructed."""

    pass


class RouteNotFoundError(AwsUtilsError):
    """No route matched the incoming request."""

    pass


class RequestParseError(AwsUtilsError):
    """Parameters or body could not be extracted from a request."""

    pass
