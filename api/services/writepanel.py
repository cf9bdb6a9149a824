"""
Save pipeline for the job listing data panel.

A save runs four stages: guard gate, default flags, per-field
normalization, then expiry reconciliation. Nothing here raises to the
editing user; rejected saves are no-ops and malformed values are coerced.
"""

from contextvars import ContextVar
from dataclasses import dataclass, field as dc_field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import unquote_plus
import logging

from api.schemas.fields import FieldDescriptor, WidgetType
from api.services.expiry import EXPIRES_KEY, ExpiryPolicy, is_being_reactivated, is_expired
from api.services.fields import FieldSchemaBuilder
from api.services.geocoding import LocationService
from api.services.listing_store import ListingStore
from api.services.rendering import NONCE_ACTION, NONCE_FIELD
from core.config import Settings
from core.middleware.authorization import Capability, can_edit_listing, user_can
from core.security import AuditAction, ResourceType, log_audit_event, verify_nonce
from core.utils.datetime import canonical_date
from core.utils.formatting import leading_int, sanitize_post_html, sanitize_text_field, strip_slashes
from core.utils.validators import is_email, validate_url
from database.models.listings import JobListing, ListingStatus
from database.models.users import User

logger = logging.getLogger(__name__)

FormValue = Union[str, List[str]]

DEFAULT_FLAGS = ("_filled", "_featured")

# Set while the pipeline performs its own corrective listing update
_in_corrective_update: ContextVar[bool] = ContextVar("in_corrective_update", default=False)


@dataclass
class ListingSubmission:
    """A submitted listing data form."""

    listing_id: Optional[int]
    form: Dict[str, FormValue] = dc_field(default_factory=dict)
    is_autosave: bool = False

    @classmethod
    def from_items(
        cls,
        listing_id: Optional[int],
        items: Iterable[Tuple[str, Any]],
        is_autosave: bool = False,
    ) -> "ListingSubmission":
        """
        Build a submission from raw form pairs.

        Keys ending in ``[]`` collect into a list under the bare key; other
        repeated keys keep their last value. Non-text values (uploads) are
        ignored.
        """
        form: Dict[str, FormValue] = {}
        for key, value in items:
            if not isinstance(value, str):
                continue
            if key.endswith("[]"):
                bucket = form.setdefault(key[:-2], [])
                if isinstance(bucket, list):
                    bucket.append(value)
            else:
                form[key] = value
        return cls(listing_id=listing_id, form=form, is_autosave=is_autosave)


class ListingSavePipeline:
    """Validates and stores a submitted listing data form."""

    def __init__(
        self,
        store: ListingStore,
        builder: FieldSchemaBuilder,
        expiry_policy: ExpiryPolicy,
        locations: Optional[LocationService],
        settings: Settings,
    ):
        self.store = store
        self.builder = builder
        self.expiry_policy = expiry_policy
        self.locations = locations
        self.settings = settings

    async def handle_save(self, submission: ListingSubmission, user: Optional[User]) -> bool:
        """
        Entry point for a listing save.

        Returns:
            True when the listing data was saved, False when any guard
            rejected the request (nothing is written in that case)
        """
        listing = await self._passes_guards(submission, user)
        if listing is None:
            return False

        await self.save_listing_data(listing, submission.form, user)
        log_audit_event(
            action=AuditAction.UPDATE,
            resource_type=ResourceType.JOB_LISTING,
            resource_id=listing.id,
            user_id=user.id if user else None,
            details={"fields": sorted(submission.form.keys())},
        )
        return True

    async def _passes_guards(
        self,
        submission: ListingSubmission,
        user: Optional[User],
    ) -> Optional[JobListing]:
        listing_id = submission.listing_id

        if _in_corrective_update.get():
            logger.debug(f"Ignoring nested save of listing {listing_id}")
            return None
        if not listing_id:
            logger.debug("Save rejected: no listing id")
            return None
        if not submission.form:
            logger.debug(f"Save of listing {listing_id} rejected: empty form")
            return None
        if submission.is_autosave:
            logger.debug(f"Save of listing {listing_id} rejected: autosave")
            return None

        listing = await self.store.get_listing(listing_id)
        if listing is None:
            logger.debug(f"Save rejected: listing {listing_id} not found")
            return None
        if listing.is_revision:
            logger.debug(f"Save of listing {listing_id} rejected: revision")
            return None

        nonce = submission.form.get(NONCE_FIELD)
        user_id = user.id if user else None
        if not isinstance(nonce, str) or not verify_nonce(nonce, NONCE_ACTION, user_id):
            logger.debug(f"Save of listing {listing_id} rejected: bad nonce")
            return None
        if not can_edit_listing(user, listing):
            logger.debug(f"Save of listing {listing_id} rejected: user {user_id} cannot edit")
            return None
        if listing.post_type != self.settings.listing_post_type:
            logger.debug(
                f"Save of listing {listing_id} rejected: post type {listing.post_type!r}"
            )
            return None

        return listing

    async def save_listing_data(
        self,
        listing: JobListing,
        form: Mapping[str, FormValue],
        user: Optional[User],
    ) -> None:
        """Store every schema field from the form, then reconcile expiry."""
        for key in DEFAULT_FLAGS:
            await self.store.add_meta(listing.id, key, 0, unique=True)

        meta = await self.store.get_all_meta(listing.id)
        fields = self.builder.build(listing, meta, user)

        for descriptor in fields:
            if descriptor.type == WidgetType.INFO.value:
                continue
            await self._save_field(listing, descriptor, form, user)

        await self.reconcile_expiry(listing, form, user)

    async def _save_field(
        self,
        listing: JobListing,
        descriptor: FieldDescriptor,
        form: Mapping[str, FormValue],
        user: Optional[User],
    ) -> None:
        key = descriptor.key
        submitted = form.get(key)

        if key == EXPIRES_KEY:
            await self._save_expiry(listing.id, submitted)
        elif key == "_job_location":
            await self._save_location(listing.id, sanitize_text_field(_scalar(submitted)))
        elif key == "_job_author":
            await self._save_author(listing, submitted, user)
        elif key == "_application":
            await self.store.update_meta(listing.id, key, _clean_application(_scalar(submitted)))
        elif descriptor.type == WidgetType.TEXTAREA.value:
            value = sanitize_post_html(strip_slashes(_scalar(submitted)))
            await self.store.update_meta(listing.id, key, value)
        elif descriptor.type == WidgetType.CHECKBOX.value:
            await self.store.update_meta(listing.id, key, 1 if key in form else 0)
        else:
            if key not in form:
                return
            if isinstance(submitted, list):
                cleaned = [sanitize_text_field(item) for item in submitted]
                value: Any = [item for item in cleaned if item and item != "0"]
            else:
                value = sanitize_text_field(submitted)
            await self.store.update_meta(listing.id, key, value)

    async def _save_expiry(self, listing_id: int, submitted: Optional[FormValue]) -> None:
        if not submitted:
            if self.settings.submission_duration:
                meta = await self.store.get_all_meta(listing_id)
                await self.store.update_meta(
                    listing_id, EXPIRES_KEY, self.expiry_policy.calculate_for(meta)
                )
            else:
                await self.store.delete_meta(listing_id, EXPIRES_KEY)
            return

        text = sanitize_text_field(_scalar(submitted))
        value = canonical_date(text, today=self.expiry_policy.today())
        await self.store.update_meta(listing_id, EXPIRES_KEY, value)

    async def _save_location(self, listing_id: int, location: str) -> None:
        changed = await self.store.update_meta(listing_id, "_job_location", location)
        if changed or not self.settings.geolocation_enabled or self.locations is None:
            return

        try:
            if not await self.locations.has_location_data(listing_id):
                await self.locations.generate_location_data(listing_id, location)
        except Exception:
            logger.exception(f"Generating location data failed for listing {listing_id}")

    async def _save_author(
        self,
        listing: JobListing,
        submitted: Optional[FormValue],
        user: Optional[User],
    ) -> None:
        if not user_can(user, Capability.EDIT_OTHERS_LISTINGS):
            return

        author_id = max(leading_int(_scalar(submitted)), 0)
        previous = listing.author_id or 0
        await self.store.update_listing(listing.id, author_id=author_id)

        if author_id != previous:
            log_audit_event(
                action=AuditAction.REASSIGN_AUTHOR,
                resource_type=ResourceType.JOB_LISTING,
                resource_id=listing.id,
                user_id=user.id if user else None,
                details={"from": previous, "to": author_id},
            )

    async def reconcile_expiry(
        self,
        listing: JobListing,
        form: Mapping[str, FormValue],
        user: Optional[User],
    ) -> None:
        """
        Expire a listing whose expiry date has passed.

        A save that republishes an expired listing gets a fresh expiry date
        instead.
        """
        expiry = await self.store.get_meta(listing.id, EXPIRES_KEY, default="")
        today = self.expiry_policy.today_str()
        if not is_expired(expiry, today):
            return

        user_id = user.id if user else None
        if is_being_reactivated(form):
            meta = await self.store.get_all_meta(listing.id)
            fresh = self.expiry_policy.calculate_for(meta)
            await self.store.update_meta(listing.id, EXPIRES_KEY, fresh)
            log_audit_event(
                action=AuditAction.REACTIVATE,
                resource_type=ResourceType.JOB_LISTING,
                resource_id=listing.id,
                user_id=user_id,
                details={"previous_expiry": expiry, "expires": fresh},
            )
            return

        token = _in_corrective_update.set(True)
        try:
            await self.store.update_listing(listing.id, status=ListingStatus.EXPIRED.value)
        finally:
            _in_corrective_update.reset(token)

        log_audit_event(
            action=AuditAction.EXPIRE,
            resource_type=ResourceType.JOB_LISTING,
            resource_id=listing.id,
            user_id=user_id,
            details={"expires": expiry, "today": today},
        )


def _scalar(value: Optional[FormValue]) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return value[-1] if value else ""
    return value


def _clean_application(value: str) -> str:
    """Keep emails as submitted; anything else is URL-decoded first."""
    if is_email(value):
        return sanitize_text_field(value)

    decoded = sanitize_text_field(unquote_plus(value))
    if decoded:
        is_valid, error = validate_url(decoded)
        if not is_valid:
            logger.debug(f"Application contact is neither an email nor a URL: {error}")
    return decoded
