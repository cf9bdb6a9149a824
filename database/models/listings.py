"""
Listings Module

Job listing records, their free-form metadata and the job type terms
attached to them.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    BigInteger,
    Integer,
    ForeignKey,
    DateTime,
    func,
    JSON,
    Column,
    Table,
    UniqueConstraint,
)
from database.engine import Base
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.users import User


# ==================== Listing Enums ===================== #
class ListingStatus(str, PyEnum):
    """Publication status of a listing."""

    DRAFT = "draft"
    PENDING = "pending"
    PUBLISH = "publish"
    EXPIRED = "expired"
    PREVIEW = "preview"
    PRIVATE = "private"
    TRASH = "trash"


REVISION_POST_TYPE = "revision"


job_listing_job_types = Table(
    "job_listing_job_types",
    Base.metadata,
    Column(
        "listing_id",
        BigInteger,
        ForeignKey("job_listings.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "job_type_id",
        BigInteger,
        ForeignKey("job_types.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


# ==================== Job Listing ===================== #
class JobListing(Base):
    """
    A job listing content record.
    Revisions share the table and point at their listing via parent_id.
    """

    __tablename__ = "job_listings"

    id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, nullable=False, autoincrement=True
    )
    post_type: Mapped[str] = mapped_column(
        String(40), nullable=False, default="job_listing", index=True
    )
    parent_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("job_listings.id", ondelete="CASCADE")
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Null or 0 means the listing was submitted by a guest
    author_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ListingStatus.DRAFT.value, index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    author: Mapped[Optional["User"]] = relationship("User", back_populates="listings")
    meta: Mapped[list["ListingMeta"]] = relationship(
        "ListingMeta", back_populates="listing", cascade="all, delete-orphan"
    )
    job_types: Mapped[list["JobType"]] = relationship(
        "JobType", secondary=job_listing_job_types, back_populates="listings"
    )

    @property
    def is_revision(self) -> bool:
        return self.post_type == REVISION_POST_TYPE or bool(self.parent_id)


class ListingMeta(Base):
    """One metadata value stored against a listing."""

    __tablename__ = "job_listing_meta"
    __table_args__ = (
        UniqueConstraint("listing_id", "meta_key", name="uq_listing_meta_key"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, nullable=False, autoincrement=True
    )
    listing_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("job_listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    meta_key: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    meta_value: Mapped[Any] = mapped_column(JSON)

    listing: Mapped["JobListing"] = relationship("JobListing", back_populates="meta")


# ==================== Job Types ===================== #
class JobType(Base):
    """Job type term (full time, freelance, ...)."""

    __tablename__ = "job_types"

    id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, nullable=False, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    listings: Mapped[list["JobListing"]] = relationship(
        "JobListing", secondary=job_listing_job_types, back_populates="job_types"
    )
