"""
APScheduler jobs for background sync.

Host-side wiring only. The sync core never starts timers and never polls
connectivity: full_sync() probes the remote itself at the start of every
run. This module is what a host that wants periodic syncs starts; nothing
in SyncEngine depends on it.

The periodic full sync is only registered when a company scope is known.
build_scheduler() returns the scheduler unstarted.
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from bizsync.config import get_settings

logger = logging.getLogger(__name__)


def build_scheduler(sync_engine, company_id: Optional[str] = None) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        sync_engine: SyncEngine the jobs drive.
        company_id: Scope for periodic full syncs; falls back to settings.company_id.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = get_settings()
    company_id = company_id or settings.company_id
    scheduler = AsyncIOScheduler()

    if company_id:
        scheduler.add_job(
            _periodic_sync,
            trigger="interval",
            minutes=settings.sync_interval_minutes,
            id="periodic_sync",
            replace_existing=True,
            kwargs={"sync_engine": sync_engine, "company_id": company_id},
        )
    else:
        logger.info("No company configured; periodic sync disabled")

    return scheduler


async def _periodic_sync(sync_engine, company_id: str) -> None:
    """Full sync for one company. Skipped quietly when one is already running."""
    try:
        result = await sync_engine.full_sync(company_id)
    except Exception as exc:
        logger.error("Periodic sync failed: %s", exc)
        return

    if result.success:
        logger.info("Periodic sync done: pushed %d, pulled %d", result.pushed, result.pulled)
    else:
        logger.info("Periodic sync skipped: %s", result.reason)
