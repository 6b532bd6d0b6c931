# /djula/utils/rate_limiter.py

import logging
from collections import defaultdict
from typing import Dict

from slowapi import Limiter
from djula.utils.request_utils import get_remote_address
from djula.utils.metrics import rate_limit_overflow_counter
from djula.config.settings import settings

# This file centralizes the rate limiters to prevent circular imports.
# `limiter` guards inbound HTTP routes per client IP; `outbound_rate_limiter`
# tracks outbound WhatsApp sends per customer.

logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"]
)


class OutboundRateLimiter:
    """
    Soft per-customer limit on outbound sends. Exceeding the limit is logged and
    counted but never blocks the send. Counters are cleared by `reset()`, which
    the application runs on a fixed timer every `window_seconds`.
    """

    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window_seconds = window_seconds
        self._counters: Dict[str, int] = defaultdict(int)

    def register_send(self, customer_id: str) -> bool:
        """Counts one send and returns True when it is over the limit."""
        self._counters[customer_id] += 1
        count = self._counters[customer_id]
        if count > self.limit:
            rate_limit_overflow_counter.inc()
            logger.warning(f"Outbound rate limit exceeded for {customer_id}: {count}/{self.limit} in {self.window_seconds}s")
            return True
        return False

    def count(self, customer_id: str) -> int:
        return self._counters.get(customer_id, 0)

    def reset(self):
        self._counters.clear()


# Globally accessible instance
outbound_rate_limiter = OutboundRateLimiter(settings.outbound_rate_limit, settings.outbound_rate_window_seconds)
