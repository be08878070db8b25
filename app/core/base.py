import time
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import BigInteger

def epoch_now() -> int:
    return int(time.time())

class Base(DeclarativeBase):
    pass

class EpochTimestampMixin:
    # Epoch seconds, matching the values exposed over the API.
    created_at: Mapped[int] = mapped_column(BigInteger, default=epoch_now)
    updated_at: Mapped[int] = mapped_column(BigInteger, default=epoch_now, onupdate=epoch_now)
