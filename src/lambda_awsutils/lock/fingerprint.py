"""Fingerprint functions for deduplicating messages.

A fingerprint function maps a message payload to a stable string key. It
must be pure: the same payload always yields the same fingerprint. Functions
signal failure by raising; the lock wraps the failure in `FingerprintError`.

The default, `sha256_fingerprint`, hashes the raw payload. When the same
logical event can arrive with different byte level framing (e.g. differing
JSON field order), use `json_fingerprint` or a function built on selected
fields such as `s3_object_fingerprint`.
"""

__all__ = [
    "Fingerprinter",
    "sha256_fingerprint",
    "json_fingerprint",
    "s3_object_fingerprint",
]

import hashlib
import json
from typing import Callable

from aws_lambda_powertools.utilities.data_classes import S3Event

from lambda_awsutils.exceptions import CardinalityError

Fingerprinter = Callable[[str], str]


def sha256_fingerprint(message: str) -> str:
    """Hex encoded SHA-256 of the UTF-8 encoded message."""
    return hashlib.sha256(message.encode("utf-8")).hexdigest()


def json_fingerprint(message: str) -> str:
    """Hex encoded SHA-256 of the message's canonical JSON form.

    Keys are sorted and separators compacted, so payloads that differ only in
    field order or whitespace share a fingerprint.

    Raises:
        ValueError: If the message is not valid JSON.
    """
    canonical = json.dumps(json.loads(message), sort_keys=True, separators=(",", ":"))
    return sha256_fingerprint(canonical)


def s3_object_fingerprint(message: str) -> str:
    """Fingerprint of the S3 object referenced by an S3 event notification.

    Hashes the bucket ARN, object key, object size and ETag of the single
    record in the notification, ignoring event time and request ids.

    Raises:
        ValueError: If the message is not valid JSON.
        CardinalityError: If the notification does not hold exactly one record.
    """
    s3_event = S3Event(json.loads(message))
    records = list(s3_event.records)
    if len(records) != 1:
        raise CardinalityError.expected_one(len(records), kind="S3")

    s3 = records[0].s3
    data = f"{s3.bucket.arn}{s3.get_object.key}{s3.get_object.size}{s3.get_object.etag}"
    return sha256_fingerprint(data)
