"""SQLAlchemy model for the asset metadata table."""
from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class AssetRecord(Base):
    """One row per asset id. Asset fields live in `data`; expiry and the download-URL cache are columns."""

    __tablename__ = "assetgate_assets"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    data: Mapped[dict] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    expires: Mapped[int | None] = mapped_column(BigInteger, nullable=True)  # epoch ms
    presigned_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    presigned_url_expires: Mapped[int | None] = mapped_column(BigInteger, nullable=True)  # epoch ms
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("ix_assetgate_assets_expires", "expires"),)
