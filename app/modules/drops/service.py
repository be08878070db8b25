import hashlib
import logging
import secrets
import uuid
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.base import epoch_now
from app.core.config import settings
from app.core.errors import AppError, ValidationError, NotFound, StorageError
from app.platform.ports.object_storage import ContentStorePort
from app.platform.provider_registry import registry
from app.modules.vendors.repository import VendorRepository
from app.modules.drops.models import Drop, DropClaim, DropStatus
from app.modules.drops.repository import DropRepository, DropClaimRepository
from app.modules.drops.schemas import DropCreate, UploadedAsset
from app.modules.drops.errors import (
    DropNotFound, DropEnded, DropNotStarted, DropExpired, DropSoldOut, AlreadyClaimed,
    TokenRequired, TokenRejected, DropContentGone,
)

log = logging.getLogger("drops.service")

CROCKFORD_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

AUDIO_MIME_BY_EXT = {
    "flac": "audio/flac",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "aac": "audio/aac",
    "m4a": "audio/mp4",
}
DEFAULT_AUDIO_MIME = "audio/mpeg"

def generate_drop_id() -> str:
    return "DROP_" + "".join(secrets.choice(CROCKFORD_ALPHABET) for _ in range(8))

def _extension(filename: str | None, default: str) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].strip().lower()
        if ext.isalnum():
            return ext
    return default

def _blank(v: str | None) -> bool:
    return v is None or not v.strip()

def download_url(drop_id: str, claim_id: str) -> str:
    return f"{settings.PUBLIC_BASE_URL}{settings.API_PREFIX}/drops/{drop_id}/download?token={claim_id}"


class DropService:
    """Drop registry: creation, reads with status refresh, administrative end/purge."""

    def __init__(self, session: AsyncSession, store: ContentStorePort | None = None):
        self.session = session
        self.store = store or registry.content_store()
        self.drops = DropRepository(session)
        self.vendors = VendorRepository(session)

    # ---- Status refresh (shared by reads and the maintenance sweep) ----
    async def refresh_statuses(self, now: int | None = None) -> tuple[int, int]:
        """
        Move due drops to ENDED and started SCHEDULED drops to ACTIVE.

        Both updates are guarded by the source status, so running this from
        several places at once, or twice in a row, leaves the same state.
        """
        now = now if now is not None else epoch_now()
        ended = await self.drops.expire_due(now)
        activated = await self.drops.activate_started(now)
        await self.session.commit()
        if ended or activated:
            log.info("Drop status refresh: ended=%s activated=%s", ended, activated)
        return ended, activated

    # ---- Create ----
    async def create_drop(self, payload: DropCreate, audio: UploadedAsset | None, cover: UploadedAsset | None = None, *, now: int | None = None) -> Drop:
        now = now if now is not None else epoch_now()
        for field in ("vendor_stable_id", "artist_name", "title"):
            if _blank(getattr(payload, field)):
                raise ValidationError(f"{field} is required")
        if payload.end_at is None:
            raise ValidationError("end_at is required")
        if payload.max_claims is None:
            raise ValidationError("max_claims is required")
        if audio is None or not audio.data:
            raise ValidationError("audio file is required")

        start_at = payload.start_at if payload.start_at is not None else now
        if payload.max_claims < 1:
            raise ValidationError("max_claims must be at least 1")
        if payload.end_at <= start_at:
            raise ValidationError("end_at must be after start_at")

        vendor_stable_id = payload.vendor_stable_id.strip()
        if not await self.vendors.is_alive(vendor_stable_id):
            raise ValidationError(f"Vendor not found: {vendor_stable_id}")

        drop_id = generate_drop_id()
        audio_ext = _extension(audio.filename, "mp3")
        try:
            audio_key = await self.store.store(drop_id, f"audio.{audio_ext}", audio.data)
            cover_key = None
            if cover is not None and cover.data:
                cover_ext = _extension(cover.filename, "jpg")
                cover_key = await self.store.store(drop_id, f"cover.{cover_ext}", cover.data)

            obj = await self.drops.create(
                drop_id=drop_id,
                vendor_stable_id=vendor_stable_id,
                artist_stable_id=None if _blank(payload.artist_stable_id) else payload.artist_stable_id,
                artist_name=payload.artist_name,
                title=payload.title,
                description=None if _blank(payload.description) else payload.description,
                cover_object_key=cover_key,
                audio_object_key=audio_key,
                audio_mime=audio.content_type or AUDIO_MIME_BY_EXT.get(audio_ext, DEFAULT_AUDIO_MIME),
                audio_size_bytes=len(audio.data),
                audio_sha256=hashlib.sha256(audio.data).hexdigest(),
                start_at=start_at,
                end_at=payload.end_at,
                max_claims=payload.max_claims,
                claimed_count=0,
                status=int(DropStatus.ACTIVE if now >= start_at else DropStatus.SCHEDULED),
                env=payload.env or settings.DEFAULT_DROP_ENV,
                created_at=now,
                updated_at=now,
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            await self._discard_assets(drop_id)
            raise
        log.info("Drop created: drop_id=%s vendor=%s title=%s", drop_id, vendor_stable_id, payload.title)
        return obj

    async def _discard_assets(self, drop_id: str) -> None:
        try:
            await self.store.delete_all(drop_id)
        except StorageError:
            log.exception("Failed to clean up assets for unsaved drop %s", drop_id)

    # ---- Read ----
    async def get_drop(self, drop_id: str, *, now: int | None = None) -> Drop:
        await self.refresh_statuses(now)
        obj = await self.drops.get(drop_id)
        if obj is None:
            raise DropNotFound(drop_id)
        return obj

    async def list_drops(self, vendor_stable_id: str, *, status: int | None = None, now: int | None = None):
        await self.refresh_statuses(now)
        return await self.drops.list_for_vendor(vendor_stable_id, status=status)

    # ---- Administrative ----
    async def batch_end(self, vendor_stable_id: str, drop_ids: list[str], *, now: int | None = None) -> dict[str, bool]:
        now = now if now is not None else epoch_now()
        results: dict[str, bool] = {}
        for drop_id in drop_ids:
            try:
                results[drop_id] = await self.drops.end(drop_id, vendor_stable_id, now)
                await self.session.commit()
            except Exception:
                log.exception("Batch end failed for drop %s", drop_id)
                await self.session.rollback()
                results[drop_id] = False
        log.info("Batch end drops: vendor=%s count=%s ended=%s", vendor_stable_id, len(drop_ids), sum(results.values()))
        return results

    async def batch_purge(self, vendor_stable_id: str, drop_ids: list[str], *, now: int | None = None) -> dict[str, bool]:
        now = now if now is not None else epoch_now()
        results: dict[str, bool] = {}
        for drop_id in drop_ids:
            try:
                await self.drops.end(drop_id, vendor_stable_id, now)
                await self.session.commit()
                drop = await self.drops.get(drop_id)
                if drop is None or drop.vendor_stable_id != vendor_stable_id or drop.status != DropStatus.ENDED:
                    results[drop_id] = False
                    continue
                results[drop_id] = await self.purge_drop(drop_id, now=now)
            except Exception:
                log.exception("Batch purge failed for drop %s", drop_id)
                await self.session.rollback()
                results[drop_id] = False
        log.info("Batch purge drops: vendor=%s count=%s purged=%s", vendor_stable_id, len(drop_ids), sum(results.values()))
        return results

    async def purge_drop(self, drop_id: str, *, now: int | None = None) -> bool:
        """Delete the drop's assets, then mark it PURGED. Only ENDED drops move."""
        now = now if now is not None else epoch_now()
        await self.store.delete_all(drop_id)
        purged = await self.drops.mark_purged(drop_id, now)
        await self.session.commit()
        if purged:
            log.info("Drop purged: drop_id=%s", drop_id)
        return purged


class ClaimService:
    """Claim ledger and download-token redemption."""

    def __init__(self, session: AsyncSession, store: ContentStorePort | None = None):
        self.session = session
        self.store = store or registry.content_store()
        self.drops = DropRepository(session)
        self.claims = DropClaimRepository(session)

    async def claim(self, drop_id: str, user_id: str, device_id_hash: str | None = None, *, now: int | None = None) -> tuple[DropClaim, Drop]:
        now = now if now is not None else epoch_now()
        if _blank(user_id):
            raise ValidationError("user_id is required")

        try:
            drop = await self.drops.get_for_update(drop_id)
            if drop is None:
                raise DropNotFound(drop_id)
            if drop.status in (DropStatus.ENDED, DropStatus.PURGED):
                raise DropEnded()
            if now < drop.start_at:
                raise DropNotStarted()
            if now >= drop.end_at:
                raise DropExpired()
            # a holder retrying on a full drop is told they already claimed it
            if await self.claims.get_for_user(drop_id, user_id) is not None:
                raise AlreadyClaimed()
            if drop.claimed_count >= drop.max_claims:
                raise DropSoldOut()

            try:
                claim = await self.claims.create(
                    claim_id=str(uuid.uuid4()),
                    drop_id=drop_id,
                    user_id=user_id,
                    device_id_hash=device_id_hash,
                    claimed_at=now,
                )
            except IntegrityError:
                # a concurrent request for the same user won the unique constraint
                raise AlreadyClaimed()

            if not await self.drops.increment_claimed(drop_id, now):
                raise DropSoldOut()
            await self.session.commit()
        except AppError as e:
            await self.session.rollback()
            log.warning("Claim rejected: drop_id=%s user_id=%s reason=%s", drop_id, user_id, e.message)
            raise
        except Exception:
            await self.session.rollback()
            raise

        log.info("Drop claimed: drop_id=%s user_id=%s claim_id=%s", drop_id, user_id, claim.claim_id)
        return claim, drop

    async def download(self, drop_id: str, token: str | None, *, now: int | None = None) -> tuple[Drop, bytes]:
        now = now if now is not None else epoch_now()
        if _blank(token):
            raise TokenRequired()

        drop = await self.drops.get(drop_id)
        if drop is None:
            raise DropNotFound(drop_id)
        if await self.claims.get_by_token(drop_id, token) is None:
            raise TokenRejected()
        if drop.status == DropStatus.PURGED:
            raise DropContentGone()
        # ENDED before end_at still honours existing claims
        if now >= drop.end_at:
            raise DropExpired()

        try:
            data = await self.store.read(drop.audio_object_key)
        except NotFound:
            raise DropContentGone()
        return drop, data
