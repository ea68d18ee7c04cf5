"""Unwrap S3 event notifications delivered through SNS.

S3 can publish object notifications to an SNS topic; the S3 event is then
embedded as a JSON string in the `Message` of the SNS record.
"""

__all__ = [
    "S3_TEST_EVENT",
    "s3_record_from_sns_event",
    "s3_object_from_sns_event",
    "s3_uri_from_sns_event",
    "is_s3_test_event",
]

import json
import posixpath
from typing import Any, Mapping, Tuple, Union

from aws_lambda_powertools.utilities.data_classes import S3Event, SNSEvent
from aws_lambda_powertools.utilities.data_classes.s3_event import S3EventRecord

from lambda_awsutils.common.logging import get_service_logger
from lambda_awsutils.exceptions import CardinalityError, EventParseError

logger = get_service_logger(__name__)

S3_TEST_EVENT = "s3:TestEvent"

SNSEventLike = Union[SNSEvent, Mapping[str, Any]]


def s3_record_from_sns_event(event: SNSEventLike) -> S3EventRecord:
    """Extract the single S3 event record wrapped in an SNS event.

    Args:
        event (SNSEventLike): SNS event, raw or wrapped in a powertools `SNSEvent`.

    Raises:
        CardinalityError: If the SNS event or the embedded S3 event does not
            hold exactly one record.
        EventParseError: If the SNS message is not an S3 event in JSON form.

    Returns:
        The S3 event record.
    """
    sns_event = event if isinstance(event, SNSEvent) else SNSEvent(dict(event))
    sns_records = sns_event.raw_event.get("Records") or []
    if len(sns_records) != 1:
        raise CardinalityError.expected_one(len(sns_records), kind="SNS")

    message = next(iter(sns_event.records)).sns.message
    try:
        s3_data = json.loads(message)
    except (TypeError, ValueError) as e:
        raise EventParseError(f"failed to unmarshal S3 event from SNS message {message!r}") from e
    if not isinstance(s3_data, dict):
        raise EventParseError(f"SNS message is not an S3 event: {message!r}")

    s3_records = s3_data.get("Records") or []
    if len(s3_records) != 1:
        raise CardinalityError.expected_one(len(s3_records), kind="S3")

    return next(iter(S3Event(s3_data).records))


def s3_object_from_sns_event(event: SNSEventLike) -> Tuple[str, str]:
    """Get the bucket name and object key of the S3 event wrapped in an SNS event.

    Raises:
        CardinalityError: see `s3_record_from_sns_event`.
        EventParseError: see `s3_record_from_sns_event`.
    """
    record = s3_record_from_sns_event(event)
    return record.s3.bucket.name, record.s3.get_object.key


def s3_uri_from_sns_event(event: SNSEventLike) -> str:
    """Get the S3 URI of the object referenced by an S3 event wrapped in an SNS event.

    The key is returned as it appears in the notification (S3 URL-encodes
    special characters), so no validation is applied. Repeated slashes,
    including a leading slash on the key, are collapsed; a trailing slash on
    the key (a "folder" object) is preserved.
    """
    bucket, key = s3_object_from_sns_event(event)
    path = posixpath.normpath(f"{bucket}/{key}")
    if key.endswith("/"):
        path += "/"
    logger.debug(f"Resolved s3://{path} from SNS event")
    return f"s3://{path}"


def is_s3_test_event(message: str) -> bool:
    """True if the message is the test event S3 sends when notifications are configured.

    Never raises; messages that are not JSON objects are not test events.
    """
    try:
        data = json.loads(message)
    except (TypeError, ValueError):
        return False
    return isinstance(data, dict) and data.get("Event") == S3_TEST_EVENT
