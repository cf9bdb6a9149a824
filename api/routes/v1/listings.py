"""
Listing editor endpoints.

Serves the listing data fields, the rendered data panel, the editor boxes
and the single job type selector, and accepts panel saves.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Request
from fastapi.responses import HTMLResponse

from api.dependencies import get_current_user, get_panels, get_store, require_capability
from api.schemas.fields import FieldDescriptor, MetaBox, SaveResponse
from api.services.listing_store import ListingStore
from api.services.panels import JobListingPanels
from api.services.writepanel import ListingSubmission
from core.middleware.authorization import Capability, InsufficientCapabilities, can_edit_listing
from database.models.users import User

router = APIRouter(prefix="/listings", tags=["listings"])

can_edit = require_capability(Capability.EDIT_LISTINGS)


async def _editable_listing(store: ListingStore, listing_id: int, user: User):
    listing = await store.get_listing(listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    if not can_edit_listing(user, listing):
        raise InsufficientCapabilities(f"User {user.id} cannot edit listing {listing_id}")
    return listing


@router.get(
    "/{listing_id}/fields",
    response_model=List[FieldDescriptor],
    summary="Get Listing Fields",
    description="Ordered data fields the current user may edit on a listing.",
)
async def get_fields(
    listing_id: int = Path(..., description="Listing ID"),
    current_user: User = Depends(can_edit),
    store: ListingStore = Depends(get_store),
    panels: JobListingPanels = Depends(get_panels),
):
    """Retrieve the field schema for a listing."""
    await _editable_listing(store, listing_id, current_user)
    return await panels.fields(store, listing_id, current_user)


@router.get(
    "/{listing_id}/panel",
    response_class=HTMLResponse,
    summary="Render Listing Data Panel",
)
async def get_panel(
    listing_id: int = Path(..., description="Listing ID"),
    current_user: User = Depends(can_edit),
    store: ListingStore = Depends(get_store),
    panels: JobListingPanels = Depends(get_panels),
):
    """Render the listing data form, nonce included."""
    await _editable_listing(store, listing_id, current_user)
    return HTMLResponse(await panels.render(store, listing_id, current_user))


@router.get(
    "/{listing_id}/meta-boxes",
    response_model=List[MetaBox],
    summary="List Editor Boxes",
)
async def get_meta_boxes(
    listing_id: int = Path(..., description="Listing ID"),
    current_user: User = Depends(can_edit),
    store: ListingStore = Depends(get_store),
    panels: JobListingPanels = Depends(get_panels),
):
    """Boxes shown on the listing edit screen."""
    await _editable_listing(store, listing_id, current_user)
    return await panels.boxes(store, listing_id)


@router.get(
    "/{listing_id}/job-type-box",
    response_class=HTMLResponse,
    summary="Render Job Type Selector",
)
async def get_job_type_box(
    listing_id: int = Path(..., description="Listing ID"),
    current_user: User = Depends(can_edit),
    store: ListingStore = Depends(get_store),
    panels: JobListingPanels = Depends(get_panels),
):
    """Single job type radio selector; 404 when the site does not show it."""
    await _editable_listing(store, listing_id, current_user)
    html = await panels.render_job_type_box(store, listing_id)
    if html is None:
        raise HTTPException(status_code=404, detail="Job type box not shown")
    return HTMLResponse(html)


@router.post(
    "/{listing_id}/panel",
    response_model=SaveResponse,
    summary="Save Listing Data",
    description="Store submitted listing data. Rejected saves report saved=false.",
)
async def save_panel(
    request: Request,
    listing_id: int = Path(..., description="Listing ID"),
    current_user: Optional[User] = Depends(get_current_user),
    store: ListingStore = Depends(get_store),
    panels: JobListingPanels = Depends(get_panels),
):
    """Run the save pipeline on the submitted form."""
    if await store.get_listing(listing_id) is None:
        raise HTTPException(status_code=404, detail="Listing not found")

    form = await request.form()
    submission = ListingSubmission.from_items(
        listing_id,
        form.multi_items(),
        is_autosave=form.get("autosave") == "1",
    )
    saved = await panels.save(store, submission, current_user)

    listing = await store.get_listing(listing_id)
    return SaveResponse(
        listing_id=listing_id,
        saved=saved,
        status=listing.status if listing else None,
    )
