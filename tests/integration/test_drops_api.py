"""
HTTP tests for the drops API, run in-process through httpx's ASGI transport.
"""

import hashlib

import pytest

from app.core.errors import MSG_INTERNAL_ERROR, StorageError
from app.main import app
from app.modules.drops.models import DropStatus
from app.platform.adapters.storage_local import LocalContentStore
from app.platform.provider_registry import get_content_store

from tests.support import AUDIO_BYTES, COVER_BYTES, VENDOR_ID


pytestmark = [pytest.mark.integration, pytest.mark.api]


def _form(now, **overrides):
    data = {
        "vendor_stable_id": VENDOR_ID,
        "artist_name": "Test Artist",
        "title": "First Light",
        "description": "Limited run",
        "end_at": str(now + 3600),
        "max_claims": "2",
    }
    data.update(overrides)
    return {k: v for k, v in data.items() if v is not None}


async def _create(client, now, cover=True, **overrides):
    files = {"audio": ("track.mp3", AUDIO_BYTES, "audio/mpeg")}
    if cover:
        files["cover"] = ("art.png", COVER_BYTES, "image/png")
    return await client.post("/api/drops", data=_form(now, **overrides), files=files)


@pytest.mark.asyncio
class TestCreateAndRead:
    async def test_create_drop(self, client, vendors, now):
        resp = await _create(client, now)

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        drop = body["drop"]
        assert drop["drop_id"].startswith("DROP_")
        assert drop["status"] == DropStatus.ACTIVE
        assert drop["remaining_claims"] == 2
        assert drop["audio_sha256"] == hashlib.sha256(AUDIO_BYTES).hexdigest()
        assert drop["audio_size_bytes"] == len(AUDIO_BYTES)
        assert drop["cover_url"] == f"http://cdn.drops.test/nft/drops/{drop['drop_id']}/cover.png"
        assert drop["cover_thumb_url"] == f"http://cdn.drops.test/nft/drops/{drop['drop_id']}/cover_thumb.png"

    async def test_create_missing_title(self, client, vendors, now):
        resp = await _create(client, now, title=None)

        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "title is required"}

    async def test_create_missing_audio(self, client, vendors, now):
        resp = await client.post("/api/drops", data=_form(now))

        assert resp.status_code == 400
        assert resp.json()["error"] == "audio file is required"

    async def test_create_unknown_vendor(self, client, vendors, now):
        resp = await _create(client, now, vendor_stable_id="VENDOR_UNKNOWN")

        assert resp.status_code == 400
        assert resp.json()["success"] is False

    async def test_get_drop(self, client, vendors, now):
        created = (await _create(client, now)).json()["drop"]

        resp = await client.get(f"/api/drops/{created['drop_id']}")

        assert resp.status_code == 200
        assert resp.json()["drop"]["title"] == "First Light"

    async def test_get_unknown_drop(self, client):
        resp = await client.get("/api/drops/DROP_MISSING0")

        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Drop not found"}

    async def test_list_with_status_filter(self, client, vendors, now):
        active = (await _create(client, now)).json()["drop"]
        await _create(client, now, start_at=str(now + 600), end_at=str(now + 1200))

        resp = await client.get(f"/api/vendors/{VENDOR_ID}/drops", params={"status": int(DropStatus.ACTIVE)})

        body = resp.json()
        assert body["total"] == 1
        assert body["drops"][0]["drop_id"] == active["drop_id"]

        everything = (await client.get(f"/api/vendors/{VENDOR_ID}/drops")).json()
        assert everything["total"] == 2

    async def test_list_rejects_unknown_status(self, client):
        resp = await client.get(f"/api/vendors/{VENDOR_ID}/drops", params={"status": 9})

        assert resp.status_code == 400
        assert resp.json()["success"] is False


@pytest.mark.asyncio
class TestClaimAndDownload:
    async def test_claim_then_download(self, client, vendors, now):
        drop = (await _create(client, now)).json()["drop"]

        resp = await client.post(f"/api/drops/{drop['drop_id']}/claim", json={"user_id": "user-1", "device_id_hash": "h"})

        assert resp.status_code == 200
        claim = resp.json()
        assert claim["success"] is True
        assert claim["expires_at"] == drop["end_at"]
        assert claim["audio_sha256"] == drop["audio_sha256"]
        assert claim["download_url"] == (
            f"http://drops.test/api/drops/{drop['drop_id']}/download?token={claim['claim_id']}"
        )

        dl = await client.get(f"/api/drops/{drop['drop_id']}/download", params={"token": claim["claim_id"]})

        assert dl.status_code == 200
        assert dl.content == AUDIO_BYTES
        assert dl.headers["content-type"].startswith("audio/mpeg")
        assert dl.headers["content-disposition"] == 'attachment; filename="First Light.mp3"'

    async def test_claim_counts_down(self, client, vendors, now):
        drop = (await _create(client, now)).json()["drop"]
        await client.post(f"/api/drops/{drop['drop_id']}/claim", json={"user_id": "user-1"})

        detail = (await client.get(f"/api/drops/{drop['drop_id']}")).json()["drop"]

        assert detail["claimed_count"] == 1
        assert detail["remaining_claims"] == 1

    async def test_claim_refusals(self, client, vendors, now):
        drop = (await _create(client, now, max_claims="1")).json()["drop"]
        url = f"/api/drops/{drop['drop_id']}/claim"
        await client.post(url, json={"user_id": "user-1"})

        again = await client.post(url, json={"user_id": "user-1"})
        sold_out = await client.post(url, json={"user_id": "user-2"})

        assert again.status_code == 400
        assert again.json() == {"success": False, "error": "Already claimed"}
        assert sold_out.status_code == 400
        assert sold_out.json() == {"success": False, "error": "No more claims available"}

    async def test_claim_requires_user(self, client, vendors, now):
        drop = (await _create(client, now)).json()["drop"]

        resp = await client.post(f"/api/drops/{drop['drop_id']}/claim", json={})

        assert resp.status_code == 400
        assert resp.json()["success"] is False

    async def test_download_without_token(self, client, vendors, now):
        drop = (await _create(client, now)).json()["drop"]

        resp = await client.get(f"/api/drops/{drop['drop_id']}/download")

        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Token required"}

    async def test_download_with_bad_token(self, client, vendors, now):
        drop = (await _create(client, now)).json()["drop"]

        resp = await client.get(f"/api/drops/{drop['drop_id']}/download", params={"token": "nope"})

        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Invalid token"}

    async def test_non_ascii_title_disposition(self, client, vendors, now):
        drop = (await _create(client, now, title="Café Nights")).json()["drop"]
        claim = (await client.post(f"/api/drops/{drop['drop_id']}/claim", json={"user_id": "user-1"})).json()

        dl = await client.get(f"/api/drops/{drop['drop_id']}/download", params={"token": claim["claim_id"]})

        disposition = dl.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="Caf Nights.mp3"')
        assert "filename*=UTF-8''Caf%C3%A9%20Nights.mp3" in disposition

    async def test_title_with_line_break_downloads(self, client, vendors, now):
        drop = (await _create(client, now, title="Side A\r\nSide B")).json()["drop"]
        claim = (await client.post(f"/api/drops/{drop['drop_id']}/claim", json={"user_id": "user-1"})).json()

        dl = await client.get(f"/api/drops/{drop['drop_id']}/download", params={"token": claim["claim_id"]})

        assert dl.status_code == 200
        assert dl.headers["content-disposition"].startswith('attachment; filename="Side A')
        assert dl.content == AUDIO_BYTES

    async def test_storage_failure_is_opaque(self, client, vendors, store, now):
        drop = (await _create(client, now)).json()["drop"]
        claim = (await client.post(f"/api/drops/{drop['drop_id']}/claim", json={"user_id": "user-1"})).json()

        class BrokenStore(LocalContentStore):
            async def read(self, object_key):
                raise StorageError("disk on fire")

        app.dependency_overrides[get_content_store] = lambda: BrokenStore(store.root)
        resp = await client.get(f"/api/drops/{drop['drop_id']}/download", params={"token": claim["claim_id"]})

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": MSG_INTERNAL_ERROR}


@pytest.mark.asyncio
class TestBatchEndpoints:
    async def test_batch_end(self, client, vendors, now):
        drop = (await _create(client, now)).json()["drop"]

        resp = await client.post(
            f"/api/vendors/{VENDOR_ID}/drops/batch_end",
            json={"drop_ids": [drop["drop_id"], "DROP_MISSING0"]},
        )

        assert resp.json() == {"success": True, "results": {drop["drop_id"]: True, "DROP_MISSING0": False}}
        detail = (await client.get(f"/api/drops/{drop['drop_id']}")).json()["drop"]
        assert detail["status"] == DropStatus.ENDED
        assert detail["ended_at"] is not None

    async def test_batch_purge(self, client, vendors, now):
        drop = (await _create(client, now)).json()["drop"]

        resp = await client.post(f"/api/vendors/{VENDOR_ID}/drops/batch_purge", json={"drop_ids": [drop["drop_id"]]})

        assert resp.json()["results"] == {drop["drop_id"]: True}
        listed = (await client.get(f"/api/vendors/{VENDOR_ID}/drops")).json()
        assert listed["total"] == 0


@pytest.mark.asyncio
class TestHealth:
    async def test_health(self, client):
        resp = await client.get("/api/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["db_status"] == "connected"
        assert body["service"] == "drops-api"
