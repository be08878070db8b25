from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.modules.vendors.models import Vendor

class VendorRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, stable_id: str) -> Vendor | None:
        res = await self.session.execute(select(Vendor).where(Vendor.stable_id == stable_id))
        return res.scalar_one_or_none()

    async def is_alive(self, stable_id: str) -> bool:
        q = select(Vendor.stable_id).where(Vendor.stable_id == stable_id, Vendor.is_alive.is_(True))
        res = await self.session.execute(q)
        return res.scalar_one_or_none() is not None
