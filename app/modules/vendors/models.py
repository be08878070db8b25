from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Boolean
from app.core.base import Base, EpochTimestampMixin

class Vendor(Base, EpochTimestampMixin):
    # Registry row owned by the vendor service; drops only read liveness from it.
    __tablename__ = "vendors"

    stable_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner: Mapped[str | None] = mapped_column(String(128), nullable=True)
    env: Mapped[str] = mapped_column(String(16), default="devnet")
    is_alive: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
