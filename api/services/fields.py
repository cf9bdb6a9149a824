"""Field schema for the job listing data panel."""

from functools import cmp_to_key
from typing import Any, Callable, List, Mapping, Optional
import logging

from api.schemas.fields import FieldDescriptor, WidgetType
from api.services.expiry import EXPIRES_KEY, ExpiryPolicy
from core.config import Settings
from core.middleware.authorization import Capability, user_can
from core.utils.datetime import canonical_date
from database.models.listings import JobListing
from database.models.users import User

logger = logging.getLogger(__name__)

# Receives the field list before sorting; may mutate it or return a new list
FieldExtender = Callable[[List[FieldDescriptor], int], Optional[List[FieldDescriptor]]]

EXPIRY_PLACEHOLDER = "yyyy-mm-dd"


def compare_priority(a: FieldDescriptor, b: FieldDescriptor) -> int:
    """
    Three-way comparison of field priorities.

    Fields without a priority come after every prioritised field and tie
    with each other.
    """
    a_key = (a.priority is None, a.priority or 0)
    b_key = (b.priority is None, b.priority or 0)
    if a_key == b_key:
        return 0
    return -1 if a_key < b_key else 1


def sort_by_priority(fields: List[FieldDescriptor]) -> List[FieldDescriptor]:
    """Stable sort by priority, ascending."""
    return sorted(fields, key=cmp_to_key(compare_priority))


class FieldSchemaBuilder:
    """Builds the ordered field list for one listing and one acting user."""

    def __init__(self, settings: Settings, expiry_policy: ExpiryPolicy):
        self.settings = settings
        self.expiry_policy = expiry_policy
        self._extenders: List[FieldExtender] = []

    def add_extender(self, extender: FieldExtender) -> None:
        """Register a callable that adds or changes fields before sorting."""
        self._extenders.append(extender)

    def base_fields(self, meta: Mapping[str, Any], user: Optional[User]) -> List[FieldDescriptor]:
        application = meta["_application"] if "_application" in meta else (user.email if user else "")
        return [
            FieldDescriptor(
                key="_job_location",
                label="Location",
                placeholder='e.g. "London"',
                description="Leave this blank if the location is not important.",
                priority=1,
            ),
            FieldDescriptor(
                key="_application",
                label="Application Email or URL",
                placeholder="URL or email which applicants use to apply",
                description='This field is required for the "application" area to appear beneath the listing.',
                value=application,
                priority=2,
            ),
            FieldDescriptor(key="_company_name", label="Company Name", priority=3),
            FieldDescriptor(key="_company_website", label="Company Website", priority=4),
            FieldDescriptor(
                key="_company_tagline",
                label="Company Tagline",
                placeholder="Brief description about the company",
                priority=5,
            ),
            FieldDescriptor(
                key="_company_twitter",
                label="Company Twitter",
                placeholder="@yourcompany",
                priority=6,
            ),
            FieldDescriptor(
                key="_company_video",
                label="Company Video",
                placeholder="URL to the company video",
                type=WidgetType.FILE,
                priority=8,
            ),
            FieldDescriptor(
                key="_filled",
                label="Position Filled",
                type=WidgetType.CHECKBOX,
                priority=9,
                description="Filled listings will no longer accept applications.",
            ),
        ]

    def management_fields(self, meta: Mapping[str, Any]) -> List[FieldDescriptor]:
        stored_expiry = meta.get(EXPIRES_KEY)
        return [
            FieldDescriptor(
                key="_featured",
                label="Featured Listing",
                type=WidgetType.CHECKBOX,
                description="Featured listings will be sticky during searches, and can be styled differently.",
                priority=10,
            ),
            FieldDescriptor(
                key=EXPIRES_KEY,
                label="Listing Expiry Date",
                priority=11,
                classes=["job-manager-datepicker"],
                placeholder=EXPIRY_PLACEHOLDER if stored_expiry else self.expiry_policy.calculate_for(meta),
                value=canonical_date(str(stored_expiry)) if stored_expiry else "",
            ),
        ]

    def build(
        self,
        listing: JobListing,
        meta: Mapping[str, Any],
        user: Optional[User],
    ) -> List[FieldDescriptor]:
        """
        Build the sorted field list for a listing.

        Args:
            listing: Listing being edited
            meta: Its stored metadata
            user: Acting user

        Returns:
            Field descriptors ordered by priority
        """
        fields = self.base_fields(meta, user)

        if user_can(user, Capability.MANAGE_LISTINGS):
            fields.extend(self.management_fields(meta))

        if user_can(user, Capability.EDIT_OTHERS_LISTINGS):
            fields.append(
                FieldDescriptor(
                    key="_job_author",
                    label="Posted by",
                    type=WidgetType.AUTHOR,
                    priority=12,
                )
            )

        for extender in self._extenders:
            extended = extender(fields, listing.id)
            if extended is not None:
                fields = list(extended)

        logger.debug(f"Built {len(fields)} fields for listing {listing.id}")
        return sort_by_priority(fields)
