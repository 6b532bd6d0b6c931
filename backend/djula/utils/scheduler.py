# /djula/utils/scheduler.py

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from djula.config.settings import settings
from djula.services.cache_service import CacheService
from djula.services.context_service import ContextService
from djula.utils.rate_limiter import OutboundRateLimiter

# Housekeeping timers that run inside the web process: expiring context cache
# entries, expiring the local delivery-dedup table and clearing the outbound
# rate-limit counters at the end of every window.

logger = logging.getLogger(__name__)


def build_scheduler(context: ContextService, deliveries: CacheService, rate_limiter: OutboundRateLimiter) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")

    async def sweep_context_cache():
        removed = context.sweep()
        if removed:
            logger.debug(f"Context cache sweep removed {removed} stale entries.")

    async def sweep_delivery_table():
        removed = deliveries.sweep_local()
        if removed:
            logger.debug(f"Delivery table sweep removed {removed} expired ids.")

    async def reset_outbound_rate_limits():
        rate_limiter.reset()

    scheduler.add_job(
        sweep_context_cache,
        'interval',
        seconds=settings.context_cache_ttl_seconds,
        id="context_cache_sweep_job",
        replace_existing=True,
    )
    scheduler.add_job(
        sweep_delivery_table,
        'interval',
        minutes=10,
        id="delivery_table_sweep_job",
        replace_existing=True,
    )
    scheduler.add_job(
        reset_outbound_rate_limits,
        'interval',
        seconds=rate_limiter.window_seconds,
        id="outbound_rate_limit_reset_job",
        replace_existing=True,
    )
    logger.info(
        f"Scheduled housekeeping jobs: context sweep every {settings.context_cache_ttl_seconds}s, "
        f"rate-limit reset every {rate_limiter.window_seconds}s."
    )
    return scheduler
