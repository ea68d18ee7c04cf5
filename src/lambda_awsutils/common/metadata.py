"""Invocation metadata for Lambda functions.

Provides an immutable snapshot of the current Lambda invocation built from
an explicitly passed context, falling back to the runtime environment.
"""

__all__ = [
    "LambdaMetadata",
    "get_lambda_metadata",
]

from dataclasses import dataclass, field
from typing import Optional

from aibs_informatics_aws_utils.constants.lambda_ import (
    AWS_LAMBDA_FUNCTION_MEMORY_SIZE_KEY,
    AWS_LAMBDA_FUNCTION_NAME_KEY,
    AWS_LAMBDA_FUNCTION_VERSION_KEY,
    AWS_LAMBDA_LOG_GROUP_NAME_KEY,
    AWS_LAMBDA_LOG_STREAM_NAME_KEY,
)
from aibs_informatics_core.utils.os_operations import get_env_var
from aws_lambda_powertools.utilities.typing import LambdaContext


@dataclass(frozen=True)
class LambdaMetadata:
    """Details about the current Lambda invocation.

    Attributes:
        function_name: The Lambda function name.
        function_version: The function version.
        log_group_name: CloudWatch log group name.
        log_stream_name: CloudWatch log stream name.
        memory_limit_in_mb: Memory limit in megabytes.
        context: The invocation context the metadata was read from, if any.
    """

    function_name: str = ""
    function_version: str = ""
    log_group_name: str = ""
    log_stream_name: str = ""
    memory_limit_in_mb: int = 0
    context: Optional[LambdaContext] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_environment(cls) -> "LambdaMetadata":
        """Build metadata from the Lambda runtime environment variables."""
        memory = get_env_var(AWS_LAMBDA_FUNCTION_MEMORY_SIZE_KEY, default_value="0")
        try:
            memory_limit_in_mb = int(memory)
        except (TypeError, ValueError):
            memory_limit_in_mb = 0
        return cls(
            function_name=get_env_var(AWS_LAMBDA_FUNCTION_NAME_KEY, default_value=""),
            function_version=get_env_var(AWS_LAMBDA_FUNCTION_VERSION_KEY, default_value=""),
            log_group_name=get_env_var(AWS_LAMBDA_LOG_GROUP_NAME_KEY, default_value=""),
            log_stream_name=get_env_var(AWS_LAMBDA_LOG_STREAM_NAME_KEY, default_value=""),
            memory_limit_in_mb=memory_limit_in_mb,
        )

    @classmethod
    def from_context(cls, context: LambdaContext) -> "LambdaMetadata":
        """Build metadata from a Lambda context.

        Attributes the context does not carry fall back to the environment.
        """
        env = cls.from_environment()
        return cls(
            function_name=getattr(context, "function_name", None) or env.function_name,
            function_version=getattr(context, "function_version", None) or env.function_version,
            log_group_name=getattr(context, "log_group_name", None) or env.log_group_name,
            log_stream_name=getattr(context, "log_stream_name", None) or env.log_stream_name,
            memory_limit_in_mb=int(
                getattr(context, "memory_limit_in_mb", None) or env.memory_limit_in_mb
            ),
            context=context,
        )


def get_lambda_metadata(context: Optional[LambdaContext] = None) -> LambdaMetadata:
    """Get metadata describing the current Lambda invocation.

    Args:
        context (Optional[LambdaContext]): The context passed to the handler. When
            omitted, metadata is read from the runtime environment only.

    Returns:
        An immutable LambdaMetadata value.

    Example:
        ```python
        def handler(event, context):
            metadata = get_lambda_metadata(context)
            logger.info(f"Running {metadata.function_name}:{metadata.function_version}")
        ```
    """
    if context is None:
        return LambdaMetadata.from_environment()
    return LambdaMetadata.from_context(context)
