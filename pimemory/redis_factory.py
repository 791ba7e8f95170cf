"""Redis client factory for the optional hook result log.

Runs once at session start, so both the retry schedule and each socket
operation are kept short: an unreachable server costs at most a couple
of seconds before the runner carries on without a log.
"""

import random
import time

import redis
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from .security import get_logger

logger = get_logger("redis")

SOCKET_TIMEOUT = 1.0


class RedisStartupError(Exception):
    """Redis stayed unreachable for every attempt."""
    pass


def _backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    delay = min(base_delay * (2 ** attempt), max_delay)
    return delay + delay * 0.25 * (2 * random.random() - 1)


def create_redis_client(
    redis_url: str,
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
    socket_timeout: float = SOCKET_TIMEOUT
) -> redis.Redis:
    """Connect and ping, retrying with jittered exponential backoff.

    Raises:
        RedisStartupError: If every attempt fails
    """
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout
            )
            client.ping()
            return client
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            last_error = e
            if attempt == max_retries:
                break
            delay = _backoff(attempt - 1, base_delay, max_delay)
            logger.warning(
                "connect_retry",
                str(e),
                redis_url=redis_url,
                attempt=attempt,
                max_retries=max_retries,
                retry_in=round(delay, 2),
            )
            time.sleep(delay)

    raise RedisStartupError(
        f"Could not reach redis at {redis_url} after {max_retries} attempts: {last_error}"
    )
