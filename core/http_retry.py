"""
HTTP Retry Wrapper - transient failure handling for the graph data store
Single source of truth for outbound HTTP calls
"""
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

# Transient errors that should be retried
RETRYABLE_STATUS_CODES = {429, 502, 503, 504}
RETRYABLE_EXCEPTIONS = (
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
    ConnectionResetError,
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    max_elapsed: float = 15.0   # seconds
    base_delay: float = 0.25    # seconds
    max_delay: float = 2.5      # seconds
    timeout: Tuple[float, float] = (10.0, 30.0)  # (connect, read)


DEFAULT_POLICY = RetryPolicy()


def _calculate_backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff with 10% jitter"""
    delay = min(base_delay * (2 ** attempt), max_delay)
    return delay + random.uniform(0, delay * 0.1)


def post_json_with_retry(
    url: str,
    json_body: Dict[str, Any],
    auth: Optional[Tuple[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
    policy: RetryPolicy = DEFAULT_POLICY,
) -> Tuple[bool, Optional[int], Optional[dict], Optional[str], bool]:
    """
    POST a JSON body, retrying transient failures.

    Returns:
        (ok, status_code, json_data, error_msg, retryable)
        - retryable: False for hard errors (4xx other than 429, bad JSON)
    """
    start_time = time.monotonic()
    last_error = None

    for attempt in range(policy.max_attempts):
        if time.monotonic() - start_time >= policy.max_elapsed:
            return (
                False, None, None,
                f"Max elapsed time ({policy.max_elapsed}s) exceeded after {attempt} attempts",
                True,
            )

        try:
            response = requests.request(
                method="POST",
                url=url,
                json=json_body,
                auth=auth,
                headers=headers,
                timeout=policy.timeout,
            )

            if response.status_code < 400:
                try:
                    return (True, response.status_code, response.json(), None, False)
                except ValueError as e:
                    return (False, response.status_code, None, f"Invalid JSON: {e}", False)

            if response.status_code not in RETRYABLE_STATUS_CODES:
                return (
                    False, response.status_code, None,
                    f"HTTP {response.status_code}: {response.text[:200]}",
                    False,
                )

            last_error = f"HTTP {response.status_code}"

        except RETRYABLE_EXCEPTIONS as e:
            last_error = f"{type(e).__name__}: {e}"

        if attempt < policy.max_attempts - 1:
            backoff = _calculate_backoff(attempt, policy.base_delay, policy.max_delay)
            logger.debug("Retrying %s in %.2fs (%s)", url, backoff, last_error)
            time.sleep(backoff)

    return (
        False, None, None,
        f"All {policy.max_attempts} attempts failed. Last error: {last_error}",
        True,
    )
