from typing import Sequence
from sqlalchemy import select, update, and_, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.modules.drops.models import Drop, DropClaim, DropStatus, OPEN_STATUSES

class DropRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Drop:
        obj = Drop(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, drop_id: str) -> Drop | None:
        q = select(Drop).where(Drop.drop_id == drop_id).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_for_update(self, drop_id: str) -> Drop | None:
        # Row lock on Postgres; SQLite ignores FOR UPDATE and serialises on its writer lock.
        q = select(Drop).where(Drop.drop_id == drop_id).with_for_update().execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_for_vendor(self, vendor_stable_id: str, *, status: int | None = None) -> Sequence[Drop]:
        conditions = [Drop.vendor_stable_id == vendor_stable_id]
        if status is not None:
            conditions.append(Drop.status == status)
        else:
            conditions.append(Drop.status != int(DropStatus.PURGED))
        q = (
            select(Drop).where(and_(*conditions))
            .order_by(Drop.created_at.desc(), Drop.drop_id)
            .execution_options(populate_existing=True)
        )
        res = await self.session.execute(q)
        return res.scalars().all()

    async def _update(self, stmt) -> int:
        res = await self.session.execute(stmt.execution_options(synchronize_session=False))
        return res.rowcount or 0

    async def expire_due(self, now: int) -> int:
        stmt = update(Drop).where(
            Drop.end_at <= now,
            Drop.status.in_(OPEN_STATUSES),
        ).values(status=int(DropStatus.ENDED), ended_at=now, updated_at=now)
        return await self._update(stmt)

    async def activate_started(self, now: int) -> int:
        stmt = update(Drop).where(
            Drop.status == int(DropStatus.SCHEDULED),
            Drop.start_at <= now,
            Drop.end_at > now,
        ).values(status=int(DropStatus.ACTIVE), updated_at=now)
        return await self._update(stmt)

    async def end(self, drop_id: str, vendor_stable_id: str, now: int) -> bool:
        # ended_at survives if somehow already stamped
        stmt = update(Drop).where(
            Drop.drop_id == drop_id,
            Drop.vendor_stable_id == vendor_stable_id,
            Drop.status.in_(OPEN_STATUSES),
        ).values(status=int(DropStatus.ENDED), ended_at=func.coalesce(Drop.ended_at, now), updated_at=now)
        return await self._update(stmt) > 0

    async def mark_purged(self, drop_id: str, now: int) -> bool:
        stmt = update(Drop).where(
            Drop.drop_id == drop_id,
            Drop.status == int(DropStatus.ENDED),
        ).values(status=int(DropStatus.PURGED), purged_at=now, updated_at=now)
        return await self._update(stmt) > 0

    async def increment_claimed(self, drop_id: str, now: int) -> bool:
        # capacity re-checked in the same statement that bumps the counter
        stmt = update(Drop).where(
            Drop.drop_id == drop_id,
            Drop.claimed_count < Drop.max_claims,
        ).values(claimed_count=Drop.claimed_count + 1, updated_at=now)
        return await self._update(stmt) > 0

    async def list_purge_due(self, cutoff: int) -> Sequence[str]:
        q = select(Drop.drop_id).where(
            Drop.status == int(DropStatus.ENDED),
            Drop.ended_at.is_not(None),
            Drop.ended_at <= cutoff,
        ).order_by(Drop.ended_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

class DropClaimRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, *, claim_id: str, drop_id: str, user_id: str, device_id_hash: str | None, claimed_at: int) -> DropClaim:
        obj = DropClaim(
            claim_id=claim_id, drop_id=drop_id, user_id=user_id,
            device_id_hash=device_id_hash, claimed_at=claimed_at,
        )
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get_for_user(self, drop_id: str, user_id: str) -> DropClaim | None:
        q = select(DropClaim).where(DropClaim.drop_id == drop_id, DropClaim.user_id == user_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_token(self, drop_id: str, token: str) -> DropClaim | None:
        q = select(DropClaim).where(DropClaim.claim_id == token, DropClaim.drop_id == drop_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def count_for_drop(self, drop_id: str) -> int:
        q = select(func.count()).select_from(DropClaim).where(DropClaim.drop_id == drop_id)
        res = await self.session.execute(q)
        return int(res.scalar_one())
