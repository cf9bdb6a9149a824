"""
API Services Layer.

Listing editor services: field schema, widget rendering, saving and
storage access.
"""

from api.services.expiry import ExpiryPolicy, is_being_reactivated, is_expired
from api.services.fields import FieldSchemaBuilder, sort_by_priority
from api.services.geocoding import LocationService, MetaLocationService
from api.services.listing_store import ListingStore, SqlListingStore
from api.services.panels import JobListingPanels, meta_boxes
from api.services.rendering import (
    RenderContext,
    RendererRegistry,
    render_field,
    render_job_type_box,
    render_panel,
)
from api.services.writepanel import ListingSavePipeline, ListingSubmission

__all__ = [
    # Expiry
    "ExpiryPolicy",
    "is_being_reactivated",
    "is_expired",
    # Fields
    "FieldSchemaBuilder",
    "sort_by_priority",
    # Geocoding
    "LocationService",
    "MetaLocationService",
    # Storage
    "ListingStore",
    "SqlListingStore",
    # Panels
    "JobListingPanels",
    "meta_boxes",
    # Rendering
    "RenderContext",
    "RendererRegistry",
    "render_field",
    "render_job_type_box",
    "render_panel",
    # Saving
    "ListingSavePipeline",
    "ListingSubmission",
]
