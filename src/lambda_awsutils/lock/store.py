"""DynamoDB client factory and error classification for the deduplication lock."""

__all__ = [
    "CONDITIONAL_CHECK_FAILED",
    "TRANSIENT_ERROR_CODES",
    "StoreClientFactory",
    "DynamoDBClientFactory",
    "get_error_code",
    "is_condition_failure",
    "is_transient_error",
]

from dataclasses import dataclass
from typing import Optional, Protocol

import boto3
from botocore.client import BaseClient
from botocore.exceptions import ClientError, ConnectionClosedError
from botocore.exceptions import ConnectionError as BotoConnectionError
from botocore.exceptions import ReadTimeoutError

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"

TRANSIENT_ERROR_CODES = frozenset(
    [
        "InternalServerError",
        "ProvisionedThroughputExceededException",
        "RequestLimitExceeded",
        "ServiceUnavailable",
        "ThrottlingException",
    ]
)

CONNECTION_RESET_MESSAGE = "connection reset by peer"


class StoreClientFactory(Protocol):
    """Creates a DynamoDB client for a region."""

    def __call__(self, region: str) -> BaseClient:
        ...


@dataclass
class DynamoDBClientFactory:
    """Creates boto3 DynamoDB clients, one session per call.

    Attributes:
        profile: AWS profile name (optional, uses SDK default)
    """

    profile: Optional[str] = None

    def __call__(self, region: str) -> BaseClient:
        session = boto3.Session(profile_name=self.profile, region_name=region)
        return session.client("dynamodb")


def get_error_code(error: BaseException) -> Optional[str]:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def is_condition_failure(error: BaseException) -> bool:
    """True when the store reports that the put condition did not hold."""
    return get_error_code(error) == CONDITIONAL_CHECK_FAILED


def is_transient_error(error: BaseException) -> bool:
    """True for failures worth retrying: dropped connections, timeouts and throttling."""
    if isinstance(
        error, (BotoConnectionError, ConnectionClosedError, ReadTimeoutError, ConnectionError)
    ):
        return True
    if get_error_code(error) in TRANSIENT_ERROR_CODES:
        return True
    return CONNECTION_RESET_MESSAGE in str(error).lower()
