"""ORM models. Importing the package registers every mapper."""

from database.models.users import User, UserRole
from database.models.listings import (
    JobListing,
    JobType,
    ListingMeta,
    ListingStatus,
    REVISION_POST_TYPE,
)

__all__ = [
    "User",
    "UserRole",
    "JobListing",
    "JobType",
    "ListingMeta",
    "ListingStatus",
    "REVISION_POST_TYPE",
]
