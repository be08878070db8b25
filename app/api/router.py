from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import settings
from app.core.db import get_session
from app.modules.drops.router import router as drops_router

api_router = APIRouter()
api_router.include_router(drops_router, tags=["drops"])

@api_router.get("/health", tags=["health"])
async def health(session: AsyncSession = Depends(get_session)):
    try:
        await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:  # noqa
        db_status = f"error: {e}"
    return {"status": "ok", "service": settings.APP_NAME, "version": settings.APP_VERSION, "db_status": db_status}
