import enum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Integer, BigInteger, ForeignKey, UniqueConstraint, CheckConstraint, Index
from app.core.base import Base, EpochTimestampMixin, epoch_now

class DropStatus(enum.IntEnum):
    SCHEDULED = 0
    ACTIVE = 1
    ENDED = 2
    PURGED = 3

# statuses a drop can still be ended from
OPEN_STATUSES = (int(DropStatus.SCHEDULED), int(DropStatus.ACTIVE))

class Drop(Base, EpochTimestampMixin):
    __tablename__ = "drops"
    __table_args__ = (
        CheckConstraint("claimed_count >= 0 AND claimed_count <= max_claims", name="ck_drops_claimed_count"),
        Index("ix_drops_vendor_created", "vendor_stable_id", "created_at"),
        Index("ix_drops_status_end_at", "status", "end_at"),
    )

    drop_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    vendor_stable_id: Mapped[str] = mapped_column(String(64))
    artist_stable_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    artist_name: Mapped[str] = mapped_column(String(256))
    title: Mapped[str] = mapped_column(String(256))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Storage-relative keys, e.g. "DROP_XXXXXXXX/audio.mp3"
    cover_object_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    audio_object_key: Mapped[str] = mapped_column(String(512))
    audio_mime: Mapped[str] = mapped_column(String(128))
    audio_size_bytes: Mapped[int] = mapped_column(BigInteger)
    audio_sha256: Mapped[str] = mapped_column(String(64))

    start_at: Mapped[int] = mapped_column(BigInteger)
    end_at: Mapped[int] = mapped_column(BigInteger)
    max_claims: Mapped[int] = mapped_column(Integer)
    claimed_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[int] = mapped_column(Integer, default=int(DropStatus.SCHEDULED))
    env: Mapped[str] = mapped_column(String(16), default="devnet")

    ended_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    purged_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    @property
    def remaining_claims(self) -> int:
        return self.max_claims - self.claimed_count

class DropClaim(Base):
    __tablename__ = "drop_claims"
    __table_args__ = (
        UniqueConstraint("drop_id", "user_id", name="uq_drop_claims_drop_user"),
    )

    # claim_id doubles as the download token
    claim_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    drop_id: Mapped[str] = mapped_column(ForeignKey("drops.drop_id"), index=True)
    user_id: Mapped[str] = mapped_column(String(128))
    device_id_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    claimed_at: Mapped[int] = mapped_column(BigInteger, default=epoch_now)
