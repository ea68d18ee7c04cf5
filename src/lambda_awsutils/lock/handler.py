"""Lambda handler wrapper that skips duplicate SNS deliveries."""

__all__ = [
    "deduplicated",
]

from functools import wraps
from typing import Any, Callable, Optional

from aws_lambda_powertools.utilities.typing import LambdaContext

from lambda_awsutils.common.logging import add_handler_to_logger
from lambda_awsutils.lock.deduplication import DeduplicationLock

LambdaHandlerType = Callable[[Any, LambdaContext], Any]


def deduplicated(
    lock: DeduplicationLock, timeout: Optional[float] = None, add_to_root: bool = False
) -> Callable[[LambdaHandlerType], LambdaHandlerType]:
    """Decorate a Lambda handler so it only runs for the first delivery of an SNS message.

    Duplicate deliveries return None without invoking the handler. Lock
    errors propagate, so the invocation fails and the message is redelivered.

    Args:
        lock (DeduplicationLock): The lock used to claim each message.
        timeout (Optional[float]): Upper bound in seconds on transient retries.
        add_to_root (bool): Whether to add the lock's log handler to the root logger.

    Example:
        ```python
        lock = DeduplicationLock.from_config(os.environ["SNS_LOCK_CONFIG"])

        @deduplicated(lock)
        def handler(event, context):
            ...
        ```
    """

    def decorator(handler: LambdaHandlerType) -> LambdaHandlerType:
        @wraps(handler)
        def wrapper(event: Any, context: LambdaContext) -> Any:
            if add_to_root:
                add_handler_to_logger(lock.logger)
            if not lock.is_available_for_message(event, timeout=timeout):
                lock.logger.info(f"Skipping duplicate delivery for {handler.__name__}")
                return None
            return handler(event, context)

        return wrapper

    return decorator
