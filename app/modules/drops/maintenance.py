"""
Background drop maintenance.

One asyncio task owns the schedule: each tick expires due drops, then purges
drops that have been ENDED longer than the grace period. Ticks run strictly in
sequence, and every drop is purged in its own session so one failure does not
stop the rest of the sweep.
"""
import asyncio
import logging
from sqlalchemy.ext.asyncio import async_sessionmaker
from app.core.base import epoch_now
from app.core.config import settings
from app.core.db import SessionLocal
from app.platform.ports.object_storage import ContentStorePort
from app.platform.provider_registry import registry
from app.modules.drops.repository import DropRepository
from app.modules.drops.service import DropService

log = logging.getLogger("drops.maintenance")

async def expire_drops(session_factory: async_sessionmaker = SessionLocal, *, now: int | None = None) -> int:
    async with session_factory() as session:
        ended, _ = await DropService(session).refresh_statuses(now)
    if ended:
        log.info("Expired %s drops", ended)
    return ended

async def purge_ended_drops(
    grace_seconds: int | None = None,
    session_factory: async_sessionmaker = SessionLocal,
    store: ContentStorePort | None = None,
    *,
    now: int | None = None,
) -> int:
    now = now if now is not None else epoch_now()
    grace = settings.DROP_PURGE_GRACE_SECONDS if grace_seconds is None else grace_seconds
    store = store or registry.content_store()

    async with session_factory() as session:
        due = list(await DropRepository(session).list_purge_due(now - grace))

    purged = 0
    for drop_id in due:
        async with session_factory() as session:
            try:
                if await DropService(session, store=store).purge_drop(drop_id, now=now):
                    purged += 1
            except Exception:
                log.exception("Purge failed for drop %s; will retry next sweep", drop_id)
                await session.rollback()
    if due:
        log.info("Purged %s of %s ended drops past grace", purged, len(due))
    return purged

async def run_maintenance_tick(
    session_factory: async_sessionmaker = SessionLocal,
    store: ContentStorePort | None = None,
    *,
    grace_seconds: int | None = None,
    now: int | None = None,
) -> tuple[int, int]:
    ended = await expire_drops(session_factory, now=now)
    purged = await purge_ended_drops(grace_seconds, session_factory, store, now=now)
    return ended, purged

# ---- Background loop ----

async def run_drop_maintenance(interval_seconds: float | None = None, session_factory: async_sessionmaker = SessionLocal):
    interval = settings.DROP_SWEEP_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
    log.info("Drop maintenance started: interval=%ss grace=%ss", interval, settings.DROP_PURGE_GRACE_SECONDS)
    try:
        while True:
            try:
                await run_maintenance_tick(session_factory)
            except Exception:
                log.exception("Drop maintenance tick failed")
            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        log.info("Drop maintenance cancelled; shutting down")
        raise
