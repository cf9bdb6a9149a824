"""Listing expiry policy."""

from datetime import date
from typing import Any, Mapping

from core.config import Settings
from core.utils.datetime import add_days, format_date, site_today
from core.utils.formatting import absint


EXPIRES_KEY = "_job_expires"
DURATION_KEY = "_job_duration"


class ExpiryPolicy:
    """Computes default expiry dates from the configured listing duration."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def today(self) -> date:
        return site_today(self.settings.site_timezone)

    def today_str(self) -> str:
        return format_date(self.today())

    def calculate_expiry(self, duration_override: Any = None) -> str:
        """
        Default expiry for a listing as ``YYYY-MM-DD``.

        A per-listing duration wins over the site-wide submission duration.
        Returns an empty string when neither is set.
        """
        duration = absint(duration_override) if duration_override else 0
        if not duration:
            duration = absint(self.settings.submission_duration or 0)
        if not duration:
            return ""
        return format_date(add_days(self.today(), duration))

    def calculate_for(self, meta: Mapping[str, Any]) -> str:
        """Default expiry using the duration stored in a listing's metadata."""
        return self.calculate_expiry(meta.get(DURATION_KEY))


def is_expired(expiry: Any, today: str) -> bool:
    """
    A listing is expired when it has an expiry date strictly before today.

    Both dates are canonical ``YYYY-MM-DD`` strings, so string comparison
    orders them correctly.
    """
    if not expiry:
        return False
    return today > str(expiry)


def is_being_reactivated(form: Mapping[str, Any]) -> bool:
    """Check whether a save moves an expired listing back to published."""
    return (
        form.get("original_post_status") == "expired"
        and form.get("post_status") == "publish"
    )
