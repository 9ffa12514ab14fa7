"""Shared retry for AI API calls on transient errors (429, 5xx, overloaded)."""

import logging
import time

logger = logging.getLogger(__name__)

# Backoff delays in seconds: 5s, 10s, 20s
RETRY_DELAYS = [5, 10, 20]
MAX_RETRIES = 3

RETRYABLE_STATUS = (429, 500, 502, 503, 504, 529)


def _is_retryable_error(exc: Exception) -> bool:
    """Return True if the exception indicates a transient error worth retrying."""
    status = getattr(exc, "status_code", None)
    if status in RETRYABLE_STATUS:
        return True
    msg = str(exc).lower()
    return (
        "529" in str(exc)
        or "overloaded" in msg
        or "rate_limit" in msg
        or "rate limit" in msg
    )


def call_with_retry(fn, *args, label="AI API", **kwargs):
    """Call ``fn`` with retry on transient errors.

    Uses exponential backoff (5s, 10s, 20s). Re-raises the last exception if all retries fail.
    """
    last_exc = None
    for attempt in range(MAX_RETRIES + 1):
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            last_exc = e
            if attempt < MAX_RETRIES and _is_retryable_error(e):
                delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                logger.warning(
                    "%s transient error (attempt %d/%d): %s. Retrying in %ds...",
                    label,
                    attempt + 1,
                    MAX_RETRIES + 1,
                    str(e)[:200],
                    delay,
                )
                time.sleep(delay)
            else:
                raise
    raise last_exc


def messages_create_with_retry(client, **kwargs):
    """Call client.messages.create with retry on 529/overloaded/rate_limit."""
    return call_with_retry(client.messages.create, label="Anthropic API", **kwargs)
