from dataclasses import dataclass
from pydantic import BaseModel, Field
from app.modules.drops.models import Drop

def content_url(base_url: str, object_key: str | None) -> str | None:
    if not object_key:
        return None
    return f"{base_url.rstrip('/')}/drops/{object_key.lstrip('/')}"

def thumb_key(object_key: str | None) -> str | None:
    # Naming convention only: cover.jpg -> cover_thumb.jpg
    if not object_key:
        return None
    head, sep, name = object_key.rpartition("/")
    stem, dot, ext = name.rpartition(".")
    thumb = f"{stem}_thumb.{ext}" if dot and stem else f"{name}_thumb"
    return f"{head}{sep}{thumb}"

# ---- Create ----

class DropCreate(BaseModel):
    # All optional here; required-field checks happen in the service so the
    # caller gets a field-specific message.
    vendor_stable_id: str | None = None
    artist_stable_id: str | None = None
    artist_name: str | None = None
    title: str | None = None
    description: str | None = None
    start_at: int | None = None
    end_at: int | None = None
    max_claims: int | None = None
    env: str | None = None

@dataclass
class UploadedAsset:
    filename: str | None
    content_type: str | None
    data: bytes

# ---- Read ----

class DropOut(BaseModel):
    drop_id: str
    vendor_stable_id: str
    artist_stable_id: str | None
    artist_name: str
    title: str
    description: str | None
    cover_url: str | None
    cover_thumb_url: str | None
    audio_mime: str
    audio_size_bytes: int
    audio_sha256: str
    start_at: int
    end_at: int
    max_claims: int
    claimed_count: int
    remaining_claims: int
    status: int
    created_at: int
    updated_at: int
    ended_at: int | None

    @classmethod
    def from_drop(cls, drop: Drop, base_url: str) -> "DropOut":
        return cls(
            drop_id=drop.drop_id,
            vendor_stable_id=drop.vendor_stable_id,
            artist_stable_id=drop.artist_stable_id,
            artist_name=drop.artist_name,
            title=drop.title,
            description=drop.description,
            cover_url=content_url(base_url, drop.cover_object_key),
            cover_thumb_url=content_url(base_url, thumb_key(drop.cover_object_key)),
            audio_mime=drop.audio_mime,
            audio_size_bytes=drop.audio_size_bytes,
            audio_sha256=drop.audio_sha256,
            start_at=drop.start_at,
            end_at=drop.end_at,
            max_claims=drop.max_claims,
            claimed_count=drop.claimed_count,
            remaining_claims=drop.remaining_claims,
            status=drop.status,
            created_at=drop.created_at,
            updated_at=drop.updated_at,
            ended_at=drop.ended_at,
        )

class DropListOut(BaseModel):
    success: bool = True
    drops: list[DropOut]
    total: int

class DropDetailOut(BaseModel):
    success: bool = True
    drop: DropOut

# ---- Claim ----

class ClaimDropIn(BaseModel):
    user_id: str
    device_id_hash: str | None = None

class ClaimDropOut(BaseModel):
    success: bool = True
    claim_id: str
    drop_id: str
    download_url: str
    expires_at: int
    audio_sha256: str
    audio_size_bytes: int

# ---- Batch ----

class BatchDropIn(BaseModel):
    drop_ids: list[str] = Field(default_factory=list)

class BatchDropOut(BaseModel):
    success: bool = True
    results: dict[str, bool]
