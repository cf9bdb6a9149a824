"""
Tests for the listing data save pipeline.

Tests:
- Guard gate (every rejection leaves the store untouched)
- Default flags
- Per-field normalization (expiry, location, author, application,
  textarea, checkbox, lists)
- Expiry reconciliation and re-entrancy
"""

import json
import logging
import pytest
from unittest.mock import AsyncMock

from api.services.expiry import ExpiryPolicy
from api.services.fields import FieldSchemaBuilder
from api.services.rendering import NONCE_ACTION
from api.services.writepanel import ListingSavePipeline, ListingSubmission
from api.schemas.fields import FieldDescriptor, WidgetType
from core.security import create_nonce
from core.utils.datetime import EPOCH_DATE
from database.models.listings import JobListing


@pytest.fixture
def locations():
    service = AsyncMock()
    service.has_location_data.return_value = False
    return service


@pytest.fixture
def builder(settings):
    return FieldSchemaBuilder(settings, ExpiryPolicy(settings))


@pytest.fixture
def pipeline(store, builder, settings, locations):
    return ListingSavePipeline(store, builder, ExpiryPolicy(settings), locations, settings)


def submission(user, listing_id=10, nonce=True, **form):
    data = dict(form)
    if nonce:
        data["job_manager_nonce"] = create_nonce(NONCE_ACTION, user.id if user else None)
    return ListingSubmission(listing_id=listing_id, form=data)


def admin_form(admin, **form):
    """Admin submissions carry the author field; keep the current author."""
    form.setdefault("_job_author", "3")
    return submission(admin, **form)


class TestGuardGate:
    """Test that rejected saves write nothing."""

    @pytest.mark.asyncio
    async def test_valid_save(self, pipeline, store, employer):
        assert await pipeline.handle_save(submission(employer, _company_name="Initech"), employer) is True
        assert store.meta[10]["_company_name"] == "Initech"

    @pytest.mark.asyncio
    async def test_missing_listing_id(self, pipeline, store, employer):
        sub = submission(employer, listing_id=None, _company_name="Initech")
        assert await pipeline.handle_save(sub, employer) is False
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_empty_form(self, pipeline, store, employer):
        sub = ListingSubmission(listing_id=10, form={})
        assert await pipeline.handle_save(sub, employer) is False
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_autosave(self, pipeline, store, employer):
        sub = submission(employer, _company_name="Initech")
        sub.is_autosave = True
        assert await pipeline.handle_save(sub, employer) is False
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_unknown_listing(self, pipeline, store, employer):
        sub = submission(employer, listing_id=999, _company_name="Initech")
        assert await pipeline.handle_save(sub, employer) is False
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_revision(self, pipeline, store, employer):
        store.add_listing(
            JobListing(id=11, post_type="revision", parent_id=10, title="", author_id=employer.id, status="inherit")
        )
        sub = submission(employer, listing_id=11, _company_name="Initech")
        assert await pipeline.handle_save(sub, employer) is False
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_missing_nonce(self, pipeline, store, employer):
        sub = submission(employer, nonce=False, _company_name="Initech")
        assert await pipeline.handle_save(sub, employer) is False
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_nonce_for_other_user(self, pipeline, store, employer, editor):
        sub = submission(editor, _company_name="Initech")
        assert await pipeline.handle_save(sub, employer) is False
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_user_cannot_edit(self, pipeline, store, subscriber):
        sub = submission(subscriber, _company_name="Initech")
        assert await pipeline.handle_save(sub, subscriber) is False
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_employer_cannot_edit_others_listing(self, pipeline, store, employer):
        store.listings[10].author_id = 1
        sub = submission(employer, _company_name="Initech")
        assert await pipeline.handle_save(sub, employer) is False
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_wrong_post_type(self, pipeline, store, employer):
        store.listings[10].post_type = "page"
        sub = submission(employer, _company_name="Initech")
        assert await pipeline.handle_save(sub, employer) is False
        assert store.writes == []


class TestDefaults:
    """Test default flag initialisation."""

    @pytest.mark.asyncio
    async def test_flags_added_when_missing(self, pipeline, store, employer):
        await pipeline.handle_save(submission(employer, _company_name="Initech"), employer)
        assert store.meta[10]["_featured"] == 0

    @pytest.mark.asyncio
    async def test_existing_featured_kept(self, pipeline, store, employer):
        store.meta[10]["_featured"] = 1
        await pipeline.handle_save(submission(employer, _company_name="Initech"), employer)
        # Employers have no featured field, so the stored flag survives
        assert store.meta[10]["_featured"] == 1


class TestCheckbox:
    """Test checkbox normalization."""

    @pytest.mark.asyncio
    async def test_present_stores_one(self, pipeline, store, employer):
        await pipeline.handle_save(submission(employer, _filled="on"), employer)
        assert store.meta[10]["_filled"] == 1

    @pytest.mark.asyncio
    async def test_present_with_empty_value_stores_one(self, pipeline, store, employer):
        await pipeline.handle_save(submission(employer, _filled=""), employer)
        assert store.meta[10]["_filled"] == 1

    @pytest.mark.asyncio
    async def test_absent_stores_zero(self, pipeline, store, employer):
        store.meta[10]["_filled"] = 1
        await pipeline.handle_save(submission(employer, _company_name="Initech"), employer)
        assert store.meta[10]["_filled"] == 0


class TestExpiryField:
    """Test expiry date normalization."""

    @pytest.mark.asyncio
    async def test_empty_with_duration_computes_future_date(self, pipeline, store, admin, settings):
        await pipeline.handle_save(admin_form(admin, _job_expires=""), admin)

        expires = store.meta[10]["_job_expires"]
        assert expires == ExpiryPolicy(settings).calculate_expiry()
        assert expires > ExpiryPolicy(settings).today_str()

    @pytest.mark.asyncio
    async def test_empty_uses_listing_duration(self, pipeline, store, admin, settings):
        store.meta[10]["_job_duration"] = 7
        await pipeline.handle_save(admin_form(admin, _job_expires=""), admin)
        assert store.meta[10]["_job_expires"] == ExpiryPolicy(settings).calculate_expiry(7)

    @pytest.mark.asyncio
    async def test_empty_without_duration_removes(self, store, builder, admin, settings, locations):
        no_duration = settings.model_copy(update={"submission_duration": None})
        pipeline = ListingSavePipeline(
            store, builder, ExpiryPolicy(no_duration), locations, no_duration
        )
        store.meta[10]["_job_expires"] = "2099-01-01"

        await pipeline.handle_save(admin_form(admin, _job_expires=""), admin)

        assert "_job_expires" not in store.meta[10]

    @pytest.mark.asyncio
    async def test_canonical_date_kept(self, pipeline, store, admin):
        await pipeline.handle_save(admin_form(admin, _job_expires="2099-03-05"), admin)
        assert store.meta[10]["_job_expires"] == "2099-03-05"

    @pytest.mark.asyncio
    async def test_other_formats_are_canonicalised(self, pipeline, store, admin):
        await pipeline.handle_save(admin_form(admin, _job_expires="03/05/2099"), admin)
        assert store.meta[10]["_job_expires"] == "2099-03-05"

    @pytest.mark.asyncio
    async def test_unparseable_date_coerces_to_epoch(self, pipeline, store, admin):
        await pipeline.handle_save(
            admin_form(admin, _job_expires="not a date", post_status="publish"), admin
        )
        assert store.meta[10]["_job_expires"] == EPOCH_DATE
        # The epoch is in the past, so reconciliation expires the listing
        assert store.listings[10].status == "expired"


class TestLocation:
    """Test location saving and geocoding."""

    @pytest.mark.asyncio
    async def test_changed_location_skips_geocode(self, pipeline, store, employer, locations):
        await pipeline.handle_save(submission(employer, _job_location="Paris"), employer)

        assert store.meta[10]["_job_location"] == "Paris"
        locations.generate_location_data.assert_not_called()

    @pytest.mark.asyncio
    async def test_unchanged_location_without_data_geocodes(self, pipeline, store, employer, locations):
        await pipeline.handle_save(submission(employer, _job_location="London"), employer)
        locations.generate_location_data.assert_awaited_once_with(10, "London")

    @pytest.mark.asyncio
    async def test_unchanged_location_with_data_skips(self, pipeline, employer, locations):
        locations.has_location_data.return_value = True
        await pipeline.handle_save(submission(employer, _job_location="London"), employer)
        locations.generate_location_data.assert_not_called()

    @pytest.mark.asyncio
    async def test_geolocation_disabled(self, store, builder, employer, settings, locations):
        disabled = settings.model_copy(update={"geolocation_enabled": False})
        pipeline = ListingSavePipeline(store, builder, ExpiryPolicy(disabled), locations, disabled)

        await pipeline.handle_save(submission(employer, _job_location="London"), employer)

        locations.generate_location_data.assert_not_called()

    @pytest.mark.asyncio
    async def test_geocode_errors_do_not_surface(self, pipeline, store, employer, locations):
        locations.generate_location_data.side_effect = RuntimeError("geocoder down")

        saved = await pipeline.handle_save(
            submission(employer, _job_location="London", _company_name="Initech"), employer
        )

        assert saved is True
        assert store.meta[10]["_company_name"] == "Initech"


class TestAuthor:
    """Test author reassignment."""

    @pytest.mark.asyncio
    async def test_editor_reassigns(self, pipeline, store, editor):
        await pipeline.handle_save(submission(editor, _job_author="1"), editor)
        assert store.listings[10].author_id == 1

    @pytest.mark.asyncio
    async def test_invalid_value_becomes_guest(self, pipeline, store, editor):
        await pipeline.handle_save(submission(editor, _job_author="nobody"), editor)
        assert store.listings[10].author_id is None
        assert ("listing", None, 0) in store.writes

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["-5", "-1", "0"])
    async def test_non_positive_value_becomes_guest(self, pipeline, store, editor, raw):
        await pipeline.handle_save(submission(editor, _job_author=raw), editor)
        assert store.listings[10].author_id is None

    @pytest.mark.asyncio
    async def test_employer_cannot_reassign(self, pipeline, store, employer):
        await pipeline.handle_save(submission(employer, _job_author="1"), employer)
        assert store.listings[10].author_id == employer.id


class TestApplication:
    """Test application contact normalization."""

    @pytest.mark.asyncio
    async def test_email_stored_verbatim(self, pipeline, store, employer):
        await pipeline.handle_save(submission(employer, _application="user@example.com"), employer)
        assert store.meta[10]["_application"] == "user@example.com"

    @pytest.mark.asyncio
    async def test_encoded_url_is_decoded(self, pipeline, store, employer):
        await pipeline.handle_save(
            submission(employer, _application="http%3A%2F%2Fexample.com"), employer
        )
        assert store.meta[10]["_application"] == "http://example.com"

    @pytest.mark.asyncio
    async def test_tags_are_stripped(self, pipeline, store, employer):
        await pipeline.handle_save(
            submission(employer, _application="<b>https://example.com/apply</b>"), employer
        )
        assert store.meta[10]["_application"] == "https://example.com/apply"

    @pytest.mark.asyncio
    async def test_audit_event_records_keys_not_values(self, pipeline, store, employer, caplog):
        with caplog.at_level(logging.INFO, logger="security.audit"):
            await pipeline.handle_save(submission(employer, _application="user@example.com"), employer)

        event = json.loads(caplog.records[-1].getMessage())
        assert event["action"] == "UPDATE"
        assert "_application" in event["details"]["fields"]
        assert "user@example.com" not in caplog.records[-1].getMessage()


class TestGenericFields:
    """Test textarea, list and text normalization."""

    @pytest.fixture
    def extra_fields(self, builder):
        def add_fields(fields, listing_id):
            fields.append(FieldDescriptor(key="_job_perks", label="Perks", type=WidgetType.TEXTAREA))
            fields.append(FieldDescriptor(key="_job_tags", label="Tags", type=WidgetType.MULTISELECT))
            fields.append(FieldDescriptor(key="_job_note", label="Note", type=WidgetType.INFO))

        builder.add_extender(add_fields)

    @pytest.mark.asyncio
    async def test_list_drops_empty_entries(self, pipeline, store, employer, extra_fields):
        await pipeline.handle_save(submission(employer, _job_tags=["a", "", "b"]), employer)
        assert store.meta[10]["_job_tags"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_list_entries_are_sanitised(self, pipeline, store, employer, extra_fields):
        await pipeline.handle_save(submission(employer, _job_tags=[" <i>x</i> ", "<br>"]), employer)
        assert store.meta[10]["_job_tags"] == ["x"]

    @pytest.mark.asyncio
    async def test_textarea_keeps_allowed_html(self, pipeline, store, employer, extra_fields):
        await pipeline.handle_save(
            submission(employer, _job_perks='<p>Free \\"lunch\\"</p><script>alert(1)</script>'),
            employer,
        )
        assert store.meta[10]["_job_perks"] == '<p>Free "lunch"</p>'

    @pytest.mark.asyncio
    async def test_info_fields_are_never_saved(self, pipeline, store, employer, extra_fields):
        await pipeline.handle_save(submission(employer, _job_note="ignored"), employer)
        assert "_job_note" not in store.meta[10]

    @pytest.mark.asyncio
    async def test_absent_text_field_is_skipped(self, pipeline, store, employer):
        await pipeline.handle_save(submission(employer, _company_tagline="Hi"), employer)
        assert store.meta[10]["_company_name"] == "Acme"

    @pytest.mark.asyncio
    async def test_empty_text_is_stored(self, pipeline, store, employer):
        await pipeline.handle_save(submission(employer, _company_name=""), employer)
        assert store.meta[10]["_company_name"] == ""

    @pytest.mark.asyncio
    async def test_text_is_sanitised(self, pipeline, store, employer):
        await pipeline.handle_save(
            submission(employer, _company_name="  Acme\n<b>Corp</b>  "), employer
        )
        assert store.meta[10]["_company_name"] == "Acme Corp"


class TestExpiryReconciliation:
    """Test expiry reconciliation at the end of a save."""

    @pytest.mark.asyncio
    async def test_past_expiry_forces_expired(self, pipeline, store, employer):
        store.meta[10]["_job_expires"] = "2020-01-01"

        await pipeline.handle_save(submission(employer, post_status="publish"), employer)

        assert store.listings[10].status == "expired"
        assert store.meta[10]["_job_expires"] == "2020-01-01"

    @pytest.mark.asyncio
    async def test_reactivation_refreshes_expiry(self, pipeline, store, employer, settings):
        store.meta[10]["_job_expires"] = "2020-01-01"

        await pipeline.handle_save(
            submission(employer, post_status="publish", original_post_status="expired"),
            employer,
        )

        assert store.meta[10]["_job_expires"] == ExpiryPolicy(settings).calculate_expiry()
        assert store.listings[10].status == "publish"

    @pytest.mark.asyncio
    async def test_future_expiry_untouched(self, pipeline, store, employer):
        store.meta[10]["_job_expires"] = "2999-01-01"
        await pipeline.handle_save(submission(employer, post_status="publish"), employer)
        assert store.listings[10].status == "publish"

    @pytest.mark.asyncio
    async def test_no_expiry_untouched(self, pipeline, store, employer):
        await pipeline.handle_save(submission(employer, post_status="publish"), employer)
        assert store.listings[10].status == "publish"

    @pytest.mark.asyncio
    async def test_corrective_update_does_not_reenter(self, pipeline, store, employer):
        store.meta[10]["_job_expires"] = "2020-01-01"
        nested = []

        async def resave(listing_id, status, author_id):
            nested.append(await pipeline.handle_save(submission(employer), employer))

        store.update_listeners.append(resave)

        assert await pipeline.handle_save(submission(employer, post_status="publish"), employer) is True
        assert nested == [False]
        # Guard is released once the corrective update finished
        assert await pipeline.handle_save(submission(employer, _company_name="X"), employer) is True


class TestSubmissionFromItems:
    """Test form pair collapsing."""

    def test_bracket_keys_collect_into_lists(self):
        sub = ListingSubmission.from_items(
            10,
            [("_job_tags[]", "a"), ("_company_name", "Acme"), ("_job_tags[]", "b")],
        )
        assert sub.form == {"_job_tags": ["a", "b"], "_company_name": "Acme"}

    def test_last_scalar_wins_and_uploads_ignored(self):
        sub = ListingSubmission.from_items(
            10,
            [("_company_name", "A"), ("_company_name", "B"), ("_logo", object())],
        )
        assert sub.form == {"_company_name": "B"}
