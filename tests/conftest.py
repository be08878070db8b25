"""
Shared fixtures for the drops test suite.

Every test gets its own SQLite database (via aiosqlite) and its own content
root under pytest's tmp_path, so tests never share rows or blobs.
"""

from __future__ import annotations

import os
import tempfile

# Settings are read at import time; point them somewhere harmless first.
_scratch = tempfile.mkdtemp(prefix="drops-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_scratch}/app.db")
os.environ.setdefault("CONTENT_ROOT", os.path.join(_scratch, "content"))
os.environ.setdefault("DROP_MAINTENANCE_ENABLED", "false")
os.environ.setdefault("PUBLIC_BASE_URL", "http://drops.test")
os.environ.setdefault("CONTENT_BASE_URL", "http://cdn.drops.test/nft")

import time
from typing import AsyncGenerator, Awaitable, Callable

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.base import Base
from app.core.db import get_session
from app.platform.adapters.storage_local import LocalContentStore
from app.platform.provider_registry import get_content_store
from app.modules.vendors.models import Vendor
from app.modules.drops.models import Drop
from app.modules.drops.schemas import DropCreate, UploadedAsset
from app.modules.drops.service import DropService

from tests.support import AUDIO_BYTES, VENDOR_ID, DEAD_VENDOR_ID


@pytest.fixture
def now() -> int:
    return int(time.time())

@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'drops.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()

@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as s:
        yield s

@pytest.fixture
def store(tmp_path) -> LocalContentStore:
    return LocalContentStore(str(tmp_path / "content" / "drops"))

@pytest_asyncio.fixture
async def vendors(session) -> list[Vendor]:
    rows = [
        Vendor(stable_id=VENDOR_ID, owner="0xalpha", is_alive=True),
        Vendor(stable_id=DEAD_VENDOR_ID, owner="0xgone", is_alive=False),
    ]
    session.add_all(rows)
    await session.commit()
    return rows

@pytest.fixture
def make_drop(session, store, vendors, now) -> Callable[..., Awaitable[Drop]]:
    """
    Factory creating a drop through DropService.

    Usage:
        drop = await make_drop(max_claims=1)
        drop = await make_drop(start_at=now + 100, created=now)
    """

    async def _make(*, created: int | None = None, audio: bytes = AUDIO_BYTES, cover: bytes | None = None, **fields) -> Drop:
        created = now if created is None else created
        data = {
            "vendor_stable_id": VENDOR_ID,
            "artist_name": "Test Artist",
            "title": "First Light",
            "end_at": created + 3600,
            "max_claims": 10,
        }
        data.update(fields)
        cover_asset = UploadedAsset("cover.png", "image/png", cover) if cover is not None else None
        return await DropService(session, store=store).create_drop(
            DropCreate(**data),
            UploadedAsset("track.mp3", "audio/mpeg", audio),
            cover_asset,
            now=created,
        )

    return _make

@pytest_asyncio.fixture
async def client(session_factory, store) -> AsyncGenerator[httpx.AsyncClient, None]:
    from app.main import app

    async def _session_override():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_content_store] = lambda: store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()
