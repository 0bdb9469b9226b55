import logging
import threading
import time
from typing import Any, Callable, Optional

from .errors import NonRetryableError, OperationCancelled

# Constants
RETRY_ATTEMPTS = 3
RETRY_DELAY = 1  # seconds

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, delay: float = RETRY_DELAY) -> float:
    """Delay to wait after the failed attempt number ``attempt`` (0-based)."""
    return (2 ** attempt) * delay


def retry_operation(operation_func: Callable[..., Any], *args,
                    attempts: int = RETRY_ATTEMPTS,
                    delay: float = RETRY_DELAY,
                    cancel_event: Optional[threading.Event] = None,
                    **kwargs) -> Any:
    """
    Retry an operation with exponential backoff.

    Returns the result of the operation or raises the last exception.

    When ``cancel_event`` is given the retry loop is cancellable: the event is
    checked before every attempt and waited on between attempts, and a failure
    observed after the event is set ends the loop with OperationCancelled.
    An attempt that succeeds after cancellation still returns its result.

    NonRetryableError and OperationCancelled are raised immediately.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}")

    name = getattr(operation_func, '__name__', repr(operation_func))
    for attempt in range(attempts):
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelled(f"{name} cancelled before attempt {attempt + 1}")
        try:
            return operation_func(*args, **kwargs)
        except (NonRetryableError, OperationCancelled):
            raise
        except Exception as e:
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelled(f"{name} cancelled after failed attempt {attempt + 1}") from e
            if attempt == attempts - 1:
                raise
            wait_time = backoff_delay(attempt, delay)
            logger.warning(f"{name} failed (attempt {attempt + 1}/{attempts}), retrying in {wait_time}s: {str(e)}")
            if cancel_event is None:
                time.sleep(wait_time)
            elif cancel_event.wait(wait_time):
                raise OperationCancelled(f"{name} cancelled while waiting to retry") from e
