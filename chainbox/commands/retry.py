"""
Blocking retry helper used while chain and node containers come up.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

import requests

from chainbox.commands.constants import (
    CHAIN_READY_ATTEMPTS,
    CHAIN_READY_DELAY,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_RETRY_DELAY,
    NODE_READY_ATTEMPTS,
    NODE_READY_DELAY,
)


@dataclass(frozen=True)
class RetryConfig:
    """How often to retry, how long to wait, and which errors count as
    "not ready yet"."""

    max_attempts: int = DEFAULT_RETRY_ATTEMPTS
    delay: float = DEFAULT_RETRY_DELAY
    backoff: float = DEFAULT_RETRY_BACKOFF
    exceptions: tuple = (Exception,)

    def waits(self) -> Iterator[float]:
        """Pause before each attempt after the first."""
        wait = self.delay
        for _ in range(self.max_attempts - 1):
            yield wait
            wait *= self.backoff


def retry_call(
    func: Callable, *args, config: Optional[RetryConfig] = None, **kwargs
) -> Any:
    """Call ``func(*args, **kwargs)`` until it stops raising.

    Exceptions outside ``config.exceptions`` propagate at once; once the
    attempts are used up the last retryable exception is re-raised.
    """
    config = config or RetryConfig()
    waits = config.waits()
    while True:
        try:
            return func(*args, **kwargs)
        except config.exceptions:
            wait = next(waits, None)
            if wait is None:
                raise
        time.sleep(wait)


# geth/anvil answer JSON-RPC a few seconds after the container starts
CHAIN_READY_RETRY_CONFIG = RetryConfig(
    max_attempts=CHAIN_READY_ATTEMPTS,
    delay=CHAIN_READY_DELAY,
    backoff=1.0,
    exceptions=(requests.RequestException, ValueError),
)

# nodes run database migrations before serving the API
NODE_READY_RETRY_CONFIG = RetryConfig(
    max_attempts=NODE_READY_ATTEMPTS,
    delay=NODE_READY_DELAY,
    backoff=1.0,
    exceptions=(requests.RequestException, ValueError, KeyError),
)
