"""
Authorization helpers for the listing editor.

Capabilities are granted per role:
1. Editing own listings
2. Editing other users' listings (and reassigning authorship)
3. Managing listings (featured flag, expiry dates)
"""

import logging
from enum import Enum
from typing import Optional, Set

from database.models.users import User, UserRole
from database.models.listings import JobListing

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    """Capabilities checked by the listing editor."""

    EDIT_LISTINGS = "edit_job_listings"
    EDIT_OTHERS_LISTINGS = "edit_others_job_listings"
    MANAGE_LISTINGS = "manage_job_listings"


# Role to capability mapping
ROLE_CAPABILITIES: dict[UserRole, Set[Capability]] = {
    UserRole.ADMINISTRATOR: {
        Capability.EDIT_LISTINGS,
        Capability.EDIT_OTHERS_LISTINGS,
        Capability.MANAGE_LISTINGS,
    },
    UserRole.EDITOR: {
        Capability.EDIT_LISTINGS,
        Capability.EDIT_OTHERS_LISTINGS,
    },
    UserRole.EMPLOYER: {
        Capability.EDIT_LISTINGS,
    },
    UserRole.SUBSCRIBER: set(),
}


class AuthorizationError(PermissionError):
    """Raised when user doesn't have required permissions."""
    pass


class InsufficientCapabilities(AuthorizationError):
    """Raised when user lacks a required capability."""
    pass


def get_user_capabilities(user: Optional[User]) -> Set[Capability]:
    """Get the capabilities granted to a user's role."""
    if user is None or user.is_active is False:
        return set()
    try:
        role = UserRole(user.role)
    except ValueError:
        logger.warning(f"User {user.id} has unknown role {user.role!r}")
        return set()
    return ROLE_CAPABILITIES.get(role, set())


def user_can(user: Optional[User], capability: Capability) -> bool:
    """Check whether a user holds a capability."""
    return capability in get_user_capabilities(user)


def can_edit_listing(user: Optional[User], listing: JobListing) -> bool:
    """
    Check whether a user may edit a specific listing.

    Own listings need EDIT_LISTINGS, anyone else's need EDIT_OTHERS_LISTINGS.
    """
    if user is None:
        return False
    if listing.author_id and listing.author_id == user.id:
        return user_can(user, Capability.EDIT_LISTINGS)
    return user_can(user, Capability.EDIT_OTHERS_LISTINGS)


def check_capability(user: Optional[User], *capabilities: Capability) -> None:
    """
    Require every listed capability.

    Raises:
        InsufficientCapabilities: If any capability is missing
    """
    granted = get_user_capabilities(user)
    missing = [c.value for c in capabilities if c not in granted]
    if missing:
        user_id = user.id if user else None
        logger.warning(f"User {user_id} lacks capabilities: {', '.join(missing)}")
        raise InsufficientCapabilities(f"Missing capabilities: {', '.join(missing)}")
