"""
Region call boundary: translate botocore failures and retry with backoff.
"""

import logging
from typing import Any, Callable

from botocore.exceptions import BotoCoreError, ClientError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import RegionUnavailable

logger = logging.getLogger(__name__)


def guarded(region: str, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
    """Run a single AWS call, raising RegionUnavailable on any botocore failure"""
    try:
        return fn(*args, **kwargs)
    except (ClientError, BotoCoreError) as e:
        raise RegionUnavailable(region, operation, e) from e


class RetryPolicy:
    """Exponential backoff for calls that may hit a transiently unavailable region"""

    def __init__(self, attempts: int = 3, min_wait: float = 1.0, max_wait: float = 30.0):
        self.attempts = max(1, attempts)
        self.min_wait = min_wait
        self.max_wait = max_wait

    def _log_retry(self, retry_state) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(f"Retrying after attempt {retry_state.attempt_number}/{self.attempts}: {exc}")

    def call(self, region: str, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        retryer = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type(RegionUnavailable),
            before_sleep=self._log_retry,
            reraise=True,
        )
        return retryer(guarded, region, operation, fn, *args, **kwargs)


NO_RETRY = RetryPolicy(attempts=1, min_wait=0, max_wait=0)
