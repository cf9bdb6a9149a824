"""Storage access for job listings and their metadata."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional
import logging

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.listings import JobListing, JobType, ListingMeta, job_listing_job_types
from database.models.users import User

logger = logging.getLogger(__name__)


class ListingStore(ABC):
    """
    Reads and writes the single listing being edited.

    Metadata holds one value per key. ``update_meta`` reports whether the
    stored value actually changed.
    """

    @abstractmethod
    async def get_listing(self, listing_id: int) -> Optional[JobListing]:
        """Get a listing (or revision) by id."""

    @abstractmethod
    async def get_all_meta(self, listing_id: int) -> Dict[str, Any]:
        """Get every metadata value of a listing keyed by meta key."""

    @abstractmethod
    async def add_meta(self, listing_id: int, key: str, value: Any, unique: bool = False) -> bool:
        """Add a value; with ``unique`` nothing happens when the key exists."""

    @abstractmethod
    async def update_meta(self, listing_id: int, key: str, value: Any) -> bool:
        """Store a value, returning False when it was already stored."""

    @abstractmethod
    async def delete_meta(self, listing_id: int, key: str) -> bool:
        """Remove a key, returning whether anything was removed."""

    @abstractmethod
    async def update_listing(
        self,
        listing_id: int,
        status: Optional[str] = None,
        author_id: Optional[int] = None,
    ) -> None:
        """Update the listing status and/or author (0 means guest)."""

    @abstractmethod
    async def get_users(self, user_ids: Iterable[int]) -> Dict[int, User]:
        """Load users by id; unknown ids are left out."""

    @abstractmethod
    async def list_job_types(self) -> List[JobType]:
        """All job type terms ordered by name."""

    @abstractmethod
    async def popular_job_types(self, limit: int = 10) -> List[JobType]:
        """Most used job type terms."""

    @abstractmethod
    async def get_listing_job_type_ids(self, listing_id: int) -> List[int]:
        """Ids of the job types assigned to a listing."""

    async def get_meta(self, listing_id: int, key: str, default: Any = "") -> Any:
        """Get a single metadata value."""
        meta = await self.get_all_meta(listing_id)
        return meta.get(key, default)

    async def meta_exists(self, listing_id: int, key: str) -> bool:
        """Check whether a metadata key is stored."""
        meta = await self.get_all_meta(listing_id)
        return key in meta

    async def count_job_types(self) -> int:
        """Number of job type terms."""
        return len(await self.list_job_types())


class SqlListingStore(ListingStore):
    """ListingStore backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_listing(self, listing_id: int) -> Optional[JobListing]:
        return await self.session.get(JobListing, listing_id)

    async def _get_row(self, listing_id: int, key: str) -> Optional[ListingMeta]:
        result = await self.session.execute(
            select(ListingMeta).where(
                ListingMeta.listing_id == listing_id,
                ListingMeta.meta_key == key,
            )
        )
        return result.scalar_one_or_none()

    async def get_all_meta(self, listing_id: int) -> Dict[str, Any]:
        result = await self.session.execute(
            select(ListingMeta.meta_key, ListingMeta.meta_value)
            .where(ListingMeta.listing_id == listing_id)
        )
        return {key: value for key, value in result.all()}

    async def get_meta(self, listing_id: int, key: str, default: Any = "") -> Any:
        row = await self._get_row(listing_id, key)
        return row.meta_value if row else default

    async def meta_exists(self, listing_id: int, key: str) -> bool:
        return await self._get_row(listing_id, key) is not None

    async def add_meta(self, listing_id: int, key: str, value: Any, unique: bool = False) -> bool:
        row = await self._get_row(listing_id, key)
        if row is not None:
            if unique:
                return False
            row.meta_value = value
        else:
            self.session.add(ListingMeta(listing_id=listing_id, meta_key=key, meta_value=value))
        await self.session.commit()
        return True

    async def update_meta(self, listing_id: int, key: str, value: Any) -> bool:
        row = await self._get_row(listing_id, key)
        if row is None:
            self.session.add(ListingMeta(listing_id=listing_id, meta_key=key, meta_value=value))
        elif row.meta_value == value:
            return False
        else:
            row.meta_value = value
        await self.session.commit()
        return True

    async def delete_meta(self, listing_id: int, key: str) -> bool:
        result = await self.session.execute(
            delete(ListingMeta).where(
                ListingMeta.listing_id == listing_id,
                ListingMeta.meta_key == key,
            )
        )
        await self.session.commit()
        return bool(result.rowcount)

    async def update_listing(
        self,
        listing_id: int,
        status: Optional[str] = None,
        author_id: Optional[int] = None,
    ) -> None:
        listing = await self.get_listing(listing_id)
        if listing is None:
            logger.warning(f"Listing {listing_id} vanished before update")
            return
        if status is not None:
            listing.status = status
        if author_id is not None:
            listing.author_id = author_id or None
        await self.session.commit()

    async def get_users(self, user_ids: Iterable[int]) -> Dict[int, User]:
        ids = {int(i) for i in user_ids if i}
        if not ids:
            return {}
        result = await self.session.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}

    async def list_job_types(self) -> List[JobType]:
        result = await self.session.execute(select(JobType).order_by(JobType.name))
        return list(result.scalars().all())

    async def popular_job_types(self, limit: int = 10) -> List[JobType]:
        result = await self.session.execute(
            select(JobType).order_by(JobType.count.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def get_listing_job_type_ids(self, listing_id: int) -> List[int]:
        result = await self.session.execute(
            select(job_listing_job_types.c.job_type_id)
            .where(job_listing_job_types.c.listing_id == listing_id)
        )
        return [row[0] for row in result.all()]

    async def count_job_types(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(JobType))
        return result.scalar() or 0
