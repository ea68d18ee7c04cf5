"""Distributed deduplication lock backed by DynamoDB.

SNS, SQS and S3 notifications are delivered at least once. The lock lets the
first invocation that sees a message claim it for a configurable window so
that duplicate deliveries can be skipped.

A claim is a single conditional `PutItem`::

    {"id": {"S": <fingerprint>}, "expire": {"N": <now + ttl>}}
    ConditionExpression: attribute_not_exists(id) OR :cur > expire

The write is both the check and the act, so two racing callers can never
both observe success: DynamoDB serialises the puts and the loser gets a
`ConditionalCheckFailedException`, reported here as `False`.
"""

__all__ = [
    "MAX_CLAIM_ATTEMPTS",
    "CLAIM_CONDITION",
    "DeduplicationLock",
]

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Union

from aws_lambda_powertools.utilities.data_classes import SNSEvent
from botocore.client import BaseClient

from lambda_awsutils.common.logging import LoggingMixins
from lambda_awsutils.exceptions import (
    CardinalityError,
    FingerprintError,
    SessionError,
    StoreError,
)
from lambda_awsutils.lock.clock import Clock, SystemClock, epoch_seconds
from lambda_awsutils.lock.config import DeduplicationLockConfig
from lambda_awsutils.lock.fingerprint import Fingerprinter, sha256_fingerprint
from lambda_awsutils.lock.store import (
    DynamoDBClientFactory,
    StoreClientFactory,
    is_condition_failure,
    is_transient_error,
)

MAX_CLAIM_ATTEMPTS = 12

CLAIM_CONDITION = "attribute_not_exists(id) OR :cur > expire"

SNSEventLike = Union[SNSEvent, Mapping[str, Any]]


@dataclass
class DeduplicationLock(LoggingMixins):
    """Claims messages in a DynamoDB table so each is processed once per TTL window.

    Callers receive `True` (proceed, the claim is theirs), `False` (duplicate,
    an unexpired claim exists) or an exception (indeterminate; the caller
    chooses whether to fail open or closed).

    The lock holds no mutable state of its own, so one instance may be shared
    by concurrent callers.

    Attributes:
        config: Region, table, TTL and retry wait.
        fingerprinter: Maps a message payload to its claim id.
        clock: Source of the current time and of retry waits.
        client_factory: Creates the DynamoDB client for the configured region.

    Example:
        ```python
        lock = DeduplicationLock.from_config('{"region": "us-west-2", "table": "sns-locks"}')

        def handler(event, context):
            if not lock.is_available_for_message(event):
                return None
            ...
        ```
    """

    config: DeduplicationLockConfig
    fingerprinter: Fingerprinter = sha256_fingerprint
    clock: Clock = field(default_factory=SystemClock)
    client_factory: StoreClientFactory = field(default_factory=DynamoDBClientFactory)

    def __post_init__(self):
        self.logger.debug(f"Deduplication lock configured with {self.config.to_document()}")

    @classmethod
    def create(
        cls, region: str, table: str, ttl: int = 0, retry_wait: int = 0, **kwargs
    ) -> "DeduplicationLock":
        """Create a lock from explicit settings.

        Args:
            region (str): AWS region of the table.
            table (str): DynamoDB table name.
            ttl (int): Claim lifetime in seconds. 0 selects the default (300).
            retry_wait (int): Retry wait in milliseconds. 0 selects the default (500).
            **kwargs: `fingerprinter`, `clock` or `client_factory` overrides.
        """
        config = DeduplicationLockConfig(
            region=region, table=table, ttl=ttl, retry_wait=retry_wait
        )
        return cls(config=config, **kwargs)

    @classmethod
    def from_config(
        cls, document: Union[str, bytes, Mapping[str, Any]], **kwargs
    ) -> "DeduplicationLock":
        """Create a lock from a configuration document.

        Raises:
            ValidationError: If `region` or `table` is missing or empty, or the
                document is malformed.
        """
        return cls(config=DeduplicationLockConfig.from_document(document), **kwargs)

    @property
    def region(self) -> str:
        return self.config.region

    @property
    def table(self) -> str:
        return self.config.table

    @property
    def ttl(self) -> int:
        return self.config.ttl

    @property
    def retry_wait(self) -> int:
        return self.config.retry_wait

    # --------------------------------------------------------------------
    # Fingerprints and expiry
    # --------------------------------------------------------------------

    def compute_fingerprint(self, message: str) -> str:
        """Apply the configured fingerprint function to a message payload.

        Raises:
            FingerprintError: If the payload cannot be reduced to a fingerprint.
        """
        try:
            return self.fingerprinter(message)
        except Exception as e:
            raise FingerprintError(f"failed computing fingerprint of message: {e}") from e

    def expires_at(self) -> str:
        """Current time plus TTL, in epoch seconds."""
        return str(epoch_seconds(self.clock.now()) + self.ttl)

    def current_time(self) -> str:
        """Current time in epoch seconds."""
        return str(epoch_seconds(self.clock.now()))

    def build_put_item_request(self, claim_id: str) -> Dict[str, Any]:
        """Construct the conditional `PutItem` arguments that claim `claim_id`.

        The put only succeeds when no claim exists for the id or the existing
        claim has expired.
        """
        return dict(
            TableName=self.table,
            Item={
                "id": {"S": claim_id},
                "expire": {"N": self.expires_at()},
            },
            ConditionExpression=CLAIM_CONDITION,
            ExpressionAttributeValues={
                ":cur": {"N": self.current_time()},
            },
        )

    # --------------------------------------------------------------------
    # Claims
    # --------------------------------------------------------------------

    def try_claim(
        self, client: BaseClient, claim_id: str, timeout: Optional[float] = None
    ) -> bool:
        """Attempt to claim `claim_id` with a single conditional write.

        Transient failures (dropped connections, timeouts, throttling) are
        retried up to `MAX_CLAIM_ATTEMPTS` times, waiting `retry_wait`
        milliseconds between attempts.

        Args:
            client (BaseClient): DynamoDB client.
            claim_id (str): The fingerprint to claim.
            timeout (Optional[float]): Seconds after which no further retry is
                started. None retries until attempts are exhausted.

        Raises:
            StoreError: On any failure other than a failed condition, when
                retries are exhausted, or when the timeout is reached.

        Returns:
            True if the claim was written, False if an unexpired claim exists.
        """
        request = self.build_put_item_request(claim_id)
        deadline = None if timeout is None else self.clock.now() + timedelta(seconds=timeout)

        last_error: Optional[Exception] = None
        attempt = 0
        while True:
            attempt += 1
            try:
                client.put_item(**request)
            except Exception as e:
                if is_condition_failure(e):
                    self.logger.info(f"{claim_id} already claimed in {self.table}")
                    return False
                if not is_transient_error(e):
                    self.logger.error(f"Failed claiming {claim_id} in {self.table}: {e}")
                    raise self._store_error(claim_id, e) from e
                last_error = e
                if attempt >= MAX_CLAIM_ATTEMPTS:
                    self.logger.error(
                        f"Exhausted {MAX_CLAIM_ATTEMPTS} attempts claiming {claim_id} "
                        f"in {self.table}"
                    )
                    raise self._store_error(claim_id, e) from e
            else:
                expire = request["Item"]["expire"]["N"]
                self.logger.info(f"Claimed {claim_id} in {self.table} until {expire}")
                return True

            wait = self.config.retry_wait_seconds
            if deadline is not None and self.clock.now() + timedelta(seconds=wait) > deadline:
                self.logger.warning(
                    f"Timed out after {attempt} attempts claiming {claim_id} in {self.table}"
                )
                raise StoreError(
                    f"timed out after {attempt} attempts putting {claim_id} to {self.table}: "
                    f"{last_error}",
                    fingerprint=claim_id,
                    table=self.table,
                ) from last_error

            self.logger.warning(
                f"Transient failure claiming {claim_id} (attempt {attempt}/{MAX_CLAIM_ATTEMPTS}), "
                f"retrying in {self.retry_wait}ms: {last_error}"
            )
            self.clock.sleep(wait)

    def is_available(self, claim_id: str, timeout: Optional[float] = None) -> bool:
        """Claim `claim_id` if no unexpired claim exists.

        Args:
            claim_id (str): The fingerprint to claim.
            timeout (Optional[float]): Upper bound in seconds on transient retries.

        Raises:
            SessionError: If a DynamoDB client cannot be created.
            StoreError: If the claim write fails.

        Returns:
            True if the caller now holds the claim, False for a duplicate.
        """
        try:
            client = self.client_factory(self.region)
        except Exception as e:
            raise SessionError(f"failed getting session for region {self.region}: {e}") from e
        return self.try_claim(client, claim_id, timeout=timeout)

    is_available_by_id = is_available

    def is_available_for_message(
        self, event: SNSEventLike, timeout: Optional[float] = None
    ) -> bool:
        """Claim the single message carried by an SNS event.

        Args:
            event (SNSEventLike): SNS event, raw or wrapped in a powertools `SNSEvent`.
            timeout (Optional[float]): Upper bound in seconds on transient retries.

        Raises:
            CardinalityError: If the event does not hold exactly one record.
            FingerprintError: If the message cannot be fingerprinted.
            SessionError: If a DynamoDB client cannot be created.
            StoreError: If the claim write fails.

        Returns:
            True if the caller now holds the claim, False for a duplicate.
        """
        sns_event = event if isinstance(event, SNSEvent) else SNSEvent(dict(event))
        records = sns_event.raw_event.get("Records") or []
        if len(records) != 1:
            raise CardinalityError.expected_one(len(records))

        message = next(iter(sns_event.records)).sns.message
        claim_id = self.compute_fingerprint(message)
        return self.is_available(claim_id, timeout=timeout)

    def _store_error(self, claim_id: str, error: Exception) -> StoreError:
        return StoreError(
            f"failed put {claim_id} to {self.table}: {error}",
            fingerprint=claim_id,
            table=self.table,
        )
