from urllib.parse import quote
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, Response
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import settings
from app.core.db import get_session
from app.core.errors import ValidationError
from app.platform.ports.object_storage import ContentStorePort
from app.platform.provider_registry import get_content_store
from app.modules.drops.models import DropStatus
from app.modules.drops.schemas import (
    DropCreate, UploadedAsset, DropOut, DropListOut, DropDetailOut,
    ClaimDropIn, ClaimDropOut, BatchDropIn, BatchDropOut,
)
from app.modules.drops.service import DropService, ClaimService, download_url

router = APIRouter()

def drop_svc(session: AsyncSession = Depends(get_session), store: ContentStorePort = Depends(get_content_store)) -> DropService:
    return DropService(session, store=store)

def claim_svc(session: AsyncSession = Depends(get_session), store: ContentStorePort = Depends(get_content_store)) -> ClaimService:
    return ClaimService(session, store=store)

async def _asset(upload: UploadFile | None) -> UploadedAsset | None:
    if upload is None:
        return None
    if upload.size is not None and upload.size > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(f"{upload.filename or 'file'} is too large")
    return UploadedAsset(filename=upload.filename, content_type=upload.content_type, data=await upload.read())

def _content_disposition(title: str, ext: str) -> str:
    filename = f"{title}.{ext}" if ext else title
    # printable ASCII only; CR/LF would break the header
    ascii_name = "".join(c for c in filename if " " <= c <= "~" and c not in '"\\') or "download"
    if ascii_name == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"

# ---- Vendor-scoped ----

@router.get("/vendors/{vendor_stable_id}/drops", response_model=DropListOut)
async def list_drops(
    vendor_stable_id: str,
    status: int | None = Query(default=None, ge=int(DropStatus.SCHEDULED), le=int(DropStatus.PURGED)),
    service: DropService = Depends(drop_svc),
):
    drops = await service.list_drops(vendor_stable_id, status=status)
    out = [DropOut.from_drop(d, settings.CONTENT_BASE_URL) for d in drops]
    return DropListOut(drops=out, total=len(out))

@router.post("/vendors/{vendor_stable_id}/drops/batch_end", response_model=BatchDropOut)
async def batch_end_drops(vendor_stable_id: str, payload: BatchDropIn, service: DropService = Depends(drop_svc)):
    return BatchDropOut(results=await service.batch_end(vendor_stable_id, payload.drop_ids))

@router.post("/vendors/{vendor_stable_id}/drops/batch_purge", response_model=BatchDropOut)
async def batch_purge_drops(vendor_stable_id: str, payload: BatchDropIn, service: DropService = Depends(drop_svc)):
    return BatchDropOut(results=await service.batch_purge(vendor_stable_id, payload.drop_ids))

# ---- Drops ----

@router.post("/drops", response_model=DropDetailOut)
async def create_drop(
    vendor_stable_id: str | None = Form(default=None),
    artist_stable_id: str | None = Form(default=None),
    artist_name: str | None = Form(default=None),
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    start_at: int | None = Form(default=None),
    end_at: int | None = Form(default=None),
    max_claims: int | None = Form(default=None),
    env: str | None = Form(default=None),
    audio: UploadFile | None = File(default=None),
    cover: UploadFile | None = File(default=None),
    service: DropService = Depends(drop_svc),
):
    payload = DropCreate(
        vendor_stable_id=vendor_stable_id, artist_stable_id=artist_stable_id,
        artist_name=artist_name, title=title, description=description,
        start_at=start_at, end_at=end_at, max_claims=max_claims, env=env,
    )
    obj = await service.create_drop(payload, await _asset(audio), await _asset(cover))
    return DropDetailOut(drop=DropOut.from_drop(obj, settings.CONTENT_BASE_URL))

@router.get("/drops/{drop_id}", response_model=DropDetailOut)
async def get_drop(drop_id: str, service: DropService = Depends(drop_svc)):
    obj = await service.get_drop(drop_id)
    return DropDetailOut(drop=DropOut.from_drop(obj, settings.CONTENT_BASE_URL))

@router.post("/drops/{drop_id}/claim", response_model=ClaimDropOut)
async def claim_drop(drop_id: str, payload: ClaimDropIn, service: ClaimService = Depends(claim_svc)):
    claim, drop = await service.claim(drop_id, payload.user_id, payload.device_id_hash)
    return ClaimDropOut(
        claim_id=claim.claim_id,
        drop_id=drop_id,
        download_url=download_url(drop_id, claim.claim_id),
        expires_at=drop.end_at,
        audio_sha256=drop.audio_sha256,
        audio_size_bytes=drop.audio_size_bytes,
    )

@router.get("/drops/{drop_id}/download")
async def download_drop(drop_id: str, token: str | None = Query(default=None), service: ClaimService = Depends(claim_svc)):
    drop, data = await service.download(drop_id, token)
    ext = drop.audio_object_key.rsplit(".", 1)[1] if "." in drop.audio_object_key else ""
    return Response(
        content=data,
        media_type=drop.audio_mime,
        headers={"Content-Disposition": _content_disposition(drop.title, ext)},
    )
