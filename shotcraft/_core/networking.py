import math
import re
from dataclasses import dataclass
from typing import Optional

from shotcraft._core.logging import get_logger

logger = get_logger(__name__)

# "limit=40, remaining=0, reset=12, key=api;minute;40" as sent by some gateways
_LIMIT_PATTERN = re.compile(
    r'limit[=:](\d+).*?remaining[=:](\d+).*?reset[=:](\d+).*?key[=:]([^,}]+)',
    re.DOTALL,
)
# "Please try again in 1.2s", "retry after 300ms"
_RETRY_AFTER_PATTERN = re.compile(
    r'(?:please\s+try\s+again\s+in|retry\s+after)\s*'
    r'(\d+(?:\.\d+)?)\s*(ms|s|sec|secs|seconds)?',
    re.IGNORECASE | re.DOTALL,
)


@dataclass
class RateLimitInfo:
    """Rate-limit window read out of a provider error; zero fields are unknown."""

    limit: int = 0
    remaining: int = 0
    reset_seconds: int = 0
    key: str = ''

    @classmethod
    def from_error(cls, error_message: str) -> Optional['RateLimitInfo']:
        """Return the parsed window, or None when the message carries no hint."""
        # escaped newlines survive when errors are re-raised as strings
        message = error_message.replace('\\n', '\n')

        info = None
        limit_match = _LIMIT_PATTERN.search(message)
        retry_match = _RETRY_AFTER_PATTERN.search(message)
        if limit_match:
            limit, remaining, reset, key = limit_match.groups()
            info = cls(
                limit=int(limit),
                remaining=int(remaining),
                reset_seconds=int(reset),
                key=key.strip().strip('"\''),
            )
        elif retry_match:
            seconds = float(retry_match.group(1))
            if (retry_match.group(2) or 's').lower() == 'ms':
                seconds /= 1000.0
            info = cls(reset_seconds=max(1, math.ceil(seconds)), key='retry-after')

        if info is not None:
            logger.info(f'📊 Rate limit detected: {info!r}')
        return info

    def get_wait_time(self, buffer_seconds: float = 1.0) -> float:
        return self.reset_seconds + buffer_seconds

    def __repr__(self) -> str:
        return (
            f'RateLimitInfo(limit={self.limit}, remaining={self.remaining}, '
            f'reset={self.reset_seconds}s)'
        )
