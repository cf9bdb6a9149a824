from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    BigInteger,
    DateTime,
    func,
    Enum as SQLEnum,
)
from database.engine import Base
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.listings import JobListing


# ==================== User Role ===================== #
class UserRole(str, PyEnum):
    ADMINISTRATOR = "administrator"  # manages every listing and site options
    EDITOR = "editor"  # edits anyone's listings
    EMPLOYER = "employer"  # posts and edits own listings
    SUBSCRIBER = "subscriber"  # read-only account


class User(Base):
    """
    Account that authors or edits job listings.
    """

    __tablename__: str = "users"
    id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, nullable=False, autoincrement=True
    )
    login: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    display_name: Mapped[str | None] = mapped_column(String(200))
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.SUBSCRIBER,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    listings: Mapped[list["JobListing"]] = relationship(
        "JobListing", back_populates="author"
    )
