"""Deduplication lock configuration.

A configuration is either built from explicit values or loaded from a JSON
document of the form::

    {"region": "us-west-2", "table": "sns-locks", "ttl": 300, "retry-wait": 500}
"""

__all__ = [
    "DEFAULT_TTL",
    "DEFAULT_RETRY_WAIT",
    "DeduplicationLockConfig",
    "DeduplicationLockConfigSchema",
]

import json
from dataclasses import dataclass
from typing import Any, Mapping, Union

import marshmallow as mm
from marshmallow import fields, validate

from lambda_awsutils.exceptions import ValidationError

DEFAULT_TTL = 300
"""Seconds a claim remains valid after creation."""

DEFAULT_RETRY_WAIT = 500
"""Milliseconds to wait between retries of a transient store failure."""


@dataclass(frozen=True)
class DeduplicationLockConfig:
    """Immutable settings of a deduplication lock.

    Zero values for `ttl` and `retry_wait` are replaced by their defaults, so
    both are always positive after construction.

    Attributes:
        region: AWS region of the DynamoDB table.
        table: DynamoDB table where claims are recorded.
        ttl: Seconds a claim remains valid after creation.
        retry_wait: Milliseconds to wait between retries of transient failures.
    """

    region: str
    table: str
    ttl: int = DEFAULT_TTL
    retry_wait: int = DEFAULT_RETRY_WAIT

    def __post_init__(self):
        if not self.ttl:
            object.__setattr__(self, "ttl", DEFAULT_TTL)
        if not self.retry_wait:
            object.__setattr__(self, "retry_wait", DEFAULT_RETRY_WAIT)
        if self.ttl < 0 or self.retry_wait < 0:
            raise ValidationError(
                f"ttl ({self.ttl}) and retry-wait ({self.retry_wait}) must not be negative"
            )

    @property
    def retry_wait_seconds(self) -> float:
        return self.retry_wait / 1000

    @classmethod
    def from_document(
        cls, document: Union[str, bytes, Mapping[str, Any]]
    ) -> "DeduplicationLockConfig":
        """Load a configuration from a JSON document or an already parsed mapping.

        Args:
            document (Union[str, bytes, Mapping[str, Any]]): The configuration document.

        Raises:
            ValidationError: If the document is not valid JSON, if `region` or
                `table` is missing or empty, or if a value has the wrong type.

        Returns:
            The loaded configuration.
        """
        if isinstance(document, (str, bytes)):
            try:
                document = json.loads(document)
            except ValueError as e:
                raise ValidationError(f"lock configuration is not valid JSON: {e}") from e
        if not isinstance(document, Mapping):
            raise ValidationError(
                f"lock configuration must be an object, not {type(document).__name__}"
            )
        try:
            return DeduplicationLockConfigSchema().load(document)
        except mm.ValidationError as e:
            raise ValidationError(f"invalid lock configuration: {e.messages}") from e

    def to_document(self) -> str:
        return json.dumps(DeduplicationLockConfigSchema().dump(self))


class DeduplicationLockConfigSchema(mm.Schema):
    """Marshmallow schema for the lock configuration document."""

    class Meta:
        unknown = mm.EXCLUDE

    region = fields.String(required=True, validate=validate.Length(min=1))
    table = fields.String(required=True, validate=validate.Length(min=1))
    ttl = fields.Integer(load_default=0, validate=validate.Range(min=0))
    retry_wait = fields.Integer(
        data_key="retry-wait", load_default=0, validate=validate.Range(min=0)
    )

    @mm.post_load
    def make_config(self, data: Mapping[str, Any], **kwargs) -> DeduplicationLockConfig:
        return DeduplicationLockConfig(**data)
