"""Tests for capability-based authorization."""

import pytest

from core.middleware.authorization import (
    Capability,
    InsufficientCapabilities,
    can_edit_listing,
    check_capability,
    get_user_capabilities,
    user_can,
)


class TestCapabilities:
    """Test role to capability mapping."""

    def test_administrator_has_everything(self, admin):
        assert get_user_capabilities(admin) == set(Capability)

    def test_editor(self, editor):
        assert user_can(editor, Capability.EDIT_OTHERS_LISTINGS)
        assert not user_can(editor, Capability.MANAGE_LISTINGS)

    def test_employer(self, employer):
        assert user_can(employer, Capability.EDIT_LISTINGS)
        assert not user_can(employer, Capability.EDIT_OTHERS_LISTINGS)

    def test_subscriber_and_anonymous(self, subscriber):
        assert get_user_capabilities(subscriber) == set()
        assert get_user_capabilities(None) == set()

    def test_inactive_user_has_nothing(self, admin):
        user = admin
        user.is_active = False
        assert get_user_capabilities(user) == set()

    def test_unknown_role(self, admin):
        user = admin
        user.role = "superhero"
        assert get_user_capabilities(user) == set()


class TestCanEditListing:
    """Test per-listing edit checks."""

    def test_own_listing(self, employer, listing):
        assert can_edit_listing(employer, listing) is True

    def test_others_listing(self, employer, editor, listing):
        listing.author_id = editor.id
        assert can_edit_listing(employer, listing) is False
        assert can_edit_listing(editor, listing) is True

    def test_guest_listing_needs_edit_others(self, employer, editor, listing):
        listing.author_id = None
        assert can_edit_listing(employer, listing) is False
        assert can_edit_listing(editor, listing) is True

    def test_anonymous(self, listing):
        assert can_edit_listing(None, listing) is False


class TestCheckCapability:
    """Test capability enforcement."""

    def test_passes(self, admin):
        check_capability(admin, Capability.EDIT_LISTINGS, Capability.MANAGE_LISTINGS)

    def test_raises_with_missing_names(self, editor):
        with pytest.raises(InsufficientCapabilities, match="manage_job_listings"):
            check_capability(editor, Capability.EDIT_LISTINGS, Capability.MANAGE_LISTINGS)

    def test_is_permission_error(self, subscriber):
        with pytest.raises(PermissionError):
            check_capability(subscriber, Capability.EDIT_LISTINGS)
