from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter

from helpdesk_ai.settings import settings

logger = logging.getLogger(__name__)

NAMESPACE = "helpdesk-ai"


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: Optional[int] = None


class AIRateLimiter:
    """Fixed-window request counting per identifier on top of ``limits``.

    ``memory://`` keeps counters per worker process; a ``redis://`` URI shares
    them between workers.
    """

    def __init__(self, storage_uri: Optional[str] = None) -> None:
        self.storage_uri = storage_uri or settings.ai_rate_limit_storage_uri
        self._storage = storage_from_string(self.storage_uri)
        self._strategy = FixedWindowRateLimiter(self._storage)

    def check(self, identifier: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        item = RateLimitItemPerSecond(max(1, int(limit)), max(1, int(window_seconds)), namespace=NAMESPACE)
        allowed = self._strategy.hit(item, identifier)
        reset_time, remaining = self._strategy.get_window_stats(item, identifier)
        if allowed:
            return RateLimitResult(allowed=True, remaining=remaining)

        logger.warning(
            "rate_limit.exceeded",
            extra={"identifier": identifier, "limit": limit, "window_seconds": window_seconds},
        )
        retry_after = max(1, math.ceil(reset_time - time.time()))
        return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

    def reset(self) -> None:
        self._storage.reset()


@lru_cache(maxsize=1)
def get_ai_rate_limiter() -> AIRateLimiter:
    return AIRateLimiter()
