"""
Listing editor service.

JobListingPanels ties the field schema, the widget renderers and the save
pipeline together. The application builds one instance at startup and
keeps it on ``app.state``; request handlers pass in a store bound to their
database session.
"""

from typing import Callable, List, Optional
import logging

from api.schemas.fields import FieldDescriptor, MetaBox
from api.services.expiry import ExpiryPolicy
from api.services.fields import FieldSchemaBuilder
from api.services.geocoding import GeocodeBackend, LocationService, MetaLocationService
from api.services.listing_store import ListingStore
from api.services.rendering import (
    NONCE_ACTION,
    RenderContext,
    RendererRegistry,
    render_job_type_box,
    render_panel,
)
from api.services.writepanel import ListingSavePipeline, ListingSubmission
from core.config import Settings
from core.security import create_nonce
from database.models.users import User

logger = logging.getLogger(__name__)

DATA_BOX_ID = "job_listing_data"
TYPE_BOX_ID = "job_listing_type"


class ListingNotFound(LookupError):
    """Raised when the listing being edited does not exist."""
    pass


def meta_boxes(settings: Settings, job_type_count: int) -> List[MetaBox]:
    """
    Editor boxes for the listing edit screen.

    The single-type selector only replaces the default term box when job
    types are enabled, some exist, and listings take one type each.
    """
    boxes = [
        MetaBox(
            id=DATA_BOX_ID,
            title=f"{settings.listing_singular_name} Data",
            context="normal",
            priority="high",
        )
    ]
    if settings.enable_job_types and job_type_count and not settings.multi_job_type:
        boxes.append(
            MetaBox(id=TYPE_BOX_ID, title="Job type", context="side", priority="default")
        )
    return boxes


class JobListingPanels:
    """Editor service for listing data fields."""

    def __init__(
        self,
        settings: Settings,
        registry: Optional[RendererRegistry] = None,
        geocode_backend: Optional[GeocodeBackend] = None,
    ):
        self.settings = settings
        self.expiry_policy = ExpiryPolicy(settings)
        self.builder = FieldSchemaBuilder(settings, self.expiry_policy)
        self.registry = registry or RendererRegistry()
        self.geocode_backend = geocode_backend

    def locations_for(self, store: ListingStore) -> LocationService:
        return MetaLocationService(store, self.geocode_backend)

    def pipeline(
        self,
        store: ListingStore,
        locations: Optional[LocationService] = None,
    ) -> ListingSavePipeline:
        return ListingSavePipeline(
            store=store,
            builder=self.builder,
            expiry_policy=self.expiry_policy,
            locations=locations or self.locations_for(store),
            settings=self.settings,
        )

    async def _load(self, store: ListingStore, listing_id: int):
        listing = await store.get_listing(listing_id)
        if listing is None:
            raise ListingNotFound(f"Listing {listing_id} not found")
        meta = await store.get_all_meta(listing_id)
        return listing, meta

    async def fields(
        self,
        store: ListingStore,
        listing_id: int,
        user: Optional[User],
    ) -> List[FieldDescriptor]:
        """Ordered fields the user may edit on a listing."""
        listing, meta = await self._load(store, listing_id)
        return self.builder.build(listing, meta, user)

    async def render(
        self,
        store: ListingStore,
        listing_id: int,
        user: Optional[User],
    ) -> str:
        """Render the listing data panel with a fresh nonce."""
        listing, meta = await self._load(store, listing_id)
        fields = self.builder.build(listing, meta, user)

        author_ids = [listing.author_id] if listing.author_id else []
        for descriptor in fields:
            if descriptor.type == "author" and str(descriptor.value or "").isdigit():
                author_ids.append(int(descriptor.value))

        ctx = RenderContext(
            listing_id=listing.id,
            author_id=listing.author_id,
            meta=meta,
            users=await store.get_users(author_ids),
            admin_url=self.settings.admin_url,
        )
        nonce = create_nonce(NONCE_ACTION, user.id if user else None)
        return render_panel(fields, ctx, nonce, self.registry)

    async def boxes(self, store: ListingStore, listing_id: int) -> List[MetaBox]:
        await self._load(store, listing_id)
        return meta_boxes(self.settings, await store.count_job_types())

    async def render_job_type_box(self, store: ListingStore, listing_id: int) -> Optional[str]:
        """Single job type selector, or None when the box is not shown."""
        boxes = await self.boxes(store, listing_id)
        if not any(box.id == TYPE_BOX_ID for box in boxes):
            return None
        return render_job_type_box(
            await store.list_job_types(),
            await store.popular_job_types(),
            await store.get_listing_job_type_ids(listing_id),
        )

    async def save(
        self,
        store: ListingStore,
        submission: ListingSubmission,
        user: Optional[User],
    ) -> bool:
        return await self.pipeline(store).handle_save(submission, user)

    def register_renderer(self, widget_type: str, renderer: Callable) -> None:
        self.registry.register(widget_type, renderer)

    def add_field_extender(self, extender: Callable) -> None:
        self.builder.add_extender(extender)
