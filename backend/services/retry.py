# =============================================================================
# CropGenesis Backend
# services/retry.py - Retry With Exponential Backoff
#
# Generic retry helper used around every generative AI call. Transient
# failures are retried with a doubling delay; anything else propagates
# immediately.
# =============================================================================

import time
import logging
from functools import wraps

from services.errors import GeminiAPIError

logger = logging.getLogger(__name__)

# Rate limited, internal error, unavailable
RETRYABLE_STATUS_CODES = frozenset({429, 500, 503})


def is_retryable_error(error):
    """
    Decide whether a failed AI call is worth retrying.

    Only Gemini HTTP errors with a transient status code qualify;
    authentication failures, bad requests and unconfigured clients do not.

    Args:
        error: Exception raised by the call

    Returns:
        bool: True if the call should be retried
    """
    return isinstance(error, GeminiAPIError) and error.status_code in RETRYABLE_STATUS_CODES


def backoff_delay_ms(attempt, base_delay_ms):
    """Delay after the given failed attempt (1-based): base * 2^(attempt-1)."""
    return base_delay_ms * (2 ** (attempt - 1))


def retry_call(operation, max_attempts=3, base_delay_ms=1000,
               is_retryable=is_retryable_error, sleep=time.sleep):
    """
    Call an operation, retrying transient failures with exponential backoff.

    Args:
        operation: Zero-argument callable to invoke
        max_attempts: Total number of calls allowed (>= 1)
        base_delay_ms: Delay after the first failure, doubled each attempt
        is_retryable: Predicate deciding whether an error is transient
        sleep: Sleep function taking seconds (injectable for tests)

    Returns:
        The operation's return value

    Raises:
        The last error once attempts are exhausted, or the first
        non-retryable error
    """
    if max_attempts < 1:
        raise ValueError('max_attempts must be at least 1')

    for attempt in range(1, max_attempts + 1):
        try:
            result = operation()
        except Exception as error:
            if not is_retryable(error):
                logger.warning(f"AI call attempt {attempt}/{max_attempts} failed with a non-retryable error: {error!r}")
                raise
            if attempt == max_attempts:
                logger.error(f"All {max_attempts} AI call attempts failed: {error!r}")
                raise

            delay_ms = backoff_delay_ms(attempt, base_delay_ms)
            logger.warning(
                f"AI call attempt {attempt}/{max_attempts} failed: {error!r}. "
                f"Retrying in {delay_ms}ms"
            )
            sleep(delay_ms / 1000.0)
        else:
            if attempt > 1:
                logger.info(f"AI call succeeded on attempt {attempt}")
            return result


def retry(max_attempts=3, base_delay_ms=1000, is_retryable=is_retryable_error, sleep=time.sleep):
    """
    Decorator form of retry_call.

    Usage:
        @retry(max_attempts=3, base_delay_ms=1000)
        def call_model(prompt):
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            return retry_call(
                lambda: f(*args, **kwargs),
                max_attempts=max_attempts,
                base_delay_ms=base_delay_ms,
                is_retryable=is_retryable,
                sleep=sleep
            )
        return decorated_function
    return decorator
