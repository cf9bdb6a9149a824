"""FastAPI dependencies for dependency injection."""

from typing import Callable, Optional
from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession

from database.engine import get_db
from database.models.users import User
from api.services.listing_store import ListingStore, SqlListingStore
from api.services.panels import JobListingPanels
from core.middleware.authorization import Capability, check_capability


USER_ID_HEADER = "X-User-Id"


async def get_store(db: AsyncSession = Depends(get_db)) -> ListingStore:
    """Listing store bound to the request's database session."""
    return SqlListingStore(db)


def get_panels(request: Request) -> JobListingPanels:
    """The editor service built at application startup."""
    return request.app.state.panels


async def get_current_user(
    request: Request,
    store: ListingStore = Depends(get_store),
) -> Optional[User]:
    """
    Get the acting user.
    This is optional - returns None if no user is attached to the request.
    """
    # Try to get user from request state (set by an upstream auth layer)
    if hasattr(request.state, 'user') and request.state.user:
        return request.state.user

    raw_id = request.headers.get(USER_ID_HEADER, "")
    if not raw_id.isdigit():
        return None

    users = await store.get_users([int(raw_id)])
    return users.get(int(raw_id))


async def require_authenticated_user(
    current_user: Optional[User] = Depends(get_current_user),
) -> User:
    """Require user to be authenticated."""
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return current_user


async def require_active_user(
    current_user: User = Depends(require_authenticated_user),
) -> User:
    """Require user to be active."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account",
        )
    return current_user


def require_capability(*capabilities: Capability) -> Callable:
    """
    Dependency requiring every listed capability.

    Raises InsufficientCapabilities (rendered as 403) when one is missing.
    """
    async def dependency(current_user: User = Depends(require_active_user)) -> User:
        check_capability(current_user, *capabilities)
        return current_user

    return dependency
