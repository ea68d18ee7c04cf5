"""DynamoDB backed deduplication lock for at-least-once delivered messages."""

__all__ = [
    "Clock",
    "DeduplicationLock",
    "DeduplicationLockConfig",
    "DynamoDBClientFactory",
    "FixedClock",
    "Fingerprinter",
    "StoreClientFactory",
    "SystemClock",
    "deduplicated",
    "json_fingerprint",
    "s3_object_fingerprint",
    "sha256_fingerprint",
]

from lambda_awsutils.lock.clock import Clock, FixedClock, SystemClock
from lambda_awsutils.lock.config import DeduplicationLockConfig
from lambda_awsutils.lock.deduplication import DeduplicationLock
from lambda_awsutils.lock.fingerprint import (
    Fingerprinter,
    json_fingerprint,
    s3_object_fingerprint,
    sha256_fingerprint,
)
from lambda_awsutils.lock.handler import deduplicated
from lambda_awsutils.lock.store import DynamoDBClientFactory, StoreClientFactory
