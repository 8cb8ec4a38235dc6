# retry.py
# Maps a tool-invocation failure to retryable / non-retryable.
# Pure function of the error text; the attempt cap lives in the executor.

import logging

logger = logging.getLogger(__name__)

# Permanent failures. Checked first, so they win over RETRYABLE_PATTERNS.
NON_RETRYABLE_PATTERNS: tuple[str, ...] = (
    "not found",
    "does not exist",
    "unauthorized",
    "forbidden",
    "invalid credentials",
    "authentication failed",
)

RETRYABLE_PATTERNS: tuple[str, ...] = (
    "timeout",
    "network",
    "connection",
    "temporary",
    "syntax error",
    "invalid query",
    "parameter",
    "argument",
    "table does not exist",
    "column does not exist",
    "permission denied",
    "access denied",
)


def is_retryable(error: BaseException | str | None) -> bool:
    """
    Return True if a failed call is worth another attempt.

    Unclassified errors are retryable; the executor's attempt cap bounds
    the optimism.
    """
    if error is None:
        return False

    message = str(error).lower()

    if any(pattern in message for pattern in NON_RETRYABLE_PATTERNS):
        return False
    if any(pattern in message for pattern in RETRYABLE_PATTERNS):
        return True
    logger.debug("Unclassified tool error, retrying: %s", message)
    return True
