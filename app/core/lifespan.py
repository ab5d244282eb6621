import contextlib
from contextlib import asynccontextmanager
import asyncio
import logging

from fastapi.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.guest_ledger import purge_stale_guests
from app.history.db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    init_db()

    stop_event = asyncio.Event()

    async def periodic_purge() -> None:
        while not stop_event.is_set():
            try:
                deleted = await run_in_threadpool(purge_stale_guests)
                if deleted:
                    logger.info("guest_retention_purge deleted=%s", deleted)
            except Exception as exc:  # noqa: BLE001 - the sweep must keep running
                logger.warning("guest_retention_purge_failed: %s", exc)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=settings.guest_purge_interval_s)
            except asyncio.TimeoutError:
                continue

    purge_task = asyncio.create_task(periodic_purge())
    yield
    stop_event.set()
    if not purge_task.done():
        purge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purge_task
