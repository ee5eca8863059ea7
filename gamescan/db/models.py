"""SQLAlchemy database models."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from gamescan.enums import ScanStatus

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _new_scan_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Scan(Base):
    """One image-to-listing workflow instance."""

    __tablename__ = "scans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_scan_id)
    status: Mapped[str] = mapped_column(
        String(20), default=ScanStatus.UPLOADED.value, nullable=False, index=True
    )

    # Stored image (owned by the file store)
    image_key: Mapped[str] = mapped_column(String(128), nullable=False)
    image_mime_type: Mapped[str] = mapped_column(String(32), nullable=False)
    image_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    session_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)  # X-Session-Id of the uploader

    # Recognition output, written once
    ai_candidates: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    ai_evidence: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    # User confirmation
    confirmed_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    confirmed_edition: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    confirmed_language: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    confirmed_condition: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    is_complete: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    normalized_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    keywords: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    price_samples: Mapped[list["PriceSample"]] = relationship(
        "PriceSample",
        back_populates="scan",
        cascade="all, delete-orphan",
        order_by="PriceSample.id",
    )
    listing_draft: Mapped[Optional["ListingDraft"]] = relationship(
        "ListingDraft", back_populates="scan", cascade="all, delete-orphan", uselist=False
    )

    @property
    def is_confirmed(self) -> bool:
        """Whether the fields pricing and drafting depend on are present."""
        return bool(
            self.confirmed_title and self.confirmed_condition and self.confirmed_language
        )


class PriceSample(Base):
    """One price observation for a scan. Append-only."""

    __tablename__ = "price_samples"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    scan_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("scans.id"), nullable=False, index=True
    )
    source: Mapped[str] = mapped_column(String(20), nullable=False)  # MANUAL, KLEINANZEIGEN, BGG, OTHER
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)
    condition_hint: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    # Relationships
    scan: Mapped["Scan"] = relationship("Scan", back_populates="price_samples")

    __table_args__ = (CheckConstraint("price > 0", name="ck_price_samples_positive"),)


class ListingDraft(Base):
    """Generated marketplace listing, one row per scan."""

    __tablename__ = "listing_drafts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    scan_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("scans.id"), nullable=False, unique=True
    )

    # Pricing
    suggested_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    quick_sale_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    negotiation_anchor: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    range_low: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    range_high: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    reasoning_bullets: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    price_confidence: Mapped[int] = mapped_column(Integer, nullable=False)

    # Generated text
    title_variants: Mapped[list] = mapped_column(JSONType, nullable=False)  # [{title, style}] x3
    description: Mapped[str] = mapped_column(Text, nullable=False)
    bullet_points: Mapped[list] = mapped_column(JSONType, nullable=False)  # x5
    search_tags: Mapped[list] = mapped_column(JSONType, nullable=False)  # x5

    # Logistics
    pickup_location: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    shipping_available: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    paypal_available: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    scan: Mapped["Scan"] = relationship("Scan", back_populates="listing_draft")
