"""FileRecord model - file metadata (actual bytes live in the blob store)."""
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from filedrop.models.base import Base, as_utc, utcnow


class FileRecord(Base):
    __tablename__ = "files"

    # Internal identity, never leaves the service
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    public_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)
    original_name: Mapped[str] = mapped_column(String(500), nullable=False)
    storage_name: Mapped[str] = mapped_column(String(300), unique=True, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Lazy expiration: a record is expired once expires_at lies in the past."""
        expires_at = as_utc(self.expires_at)
        if expires_at is None:
            return False
        return expires_at < (as_utc(now) or utcnow())
