"""Tests for sanitising and formatting helpers."""

import pytest

from core.utils.formatting import (
    absint,
    leading_int,
    join_classes,
    sanitize_link_html,
    sanitize_post_html,
    sanitize_text_field,
    strip_all_tags,
    strip_slashes,
)
from core.utils.validators import is_email, validate_url


class TestSanitizeTextField:
    """Test single-line text sanitising."""

    @pytest.mark.parametrize("raw,expected", [
        ("Acme", "Acme"),
        ("  padded  ", "padded"),
        ("line\nbreak\ttab", "line break tab"),
        ("<b>bold</b> text", "bold text"),
        ("<script>alert(1)</script>safe", "safe"),
        ("a < b", "a &lt; b"),
        ("100%25 sure", "100 sure"),
        ("", ""),
        (None, ""),
        (42, "42"),
    ])
    def test_sanitize(self, raw, expected):
        assert sanitize_text_field(raw) == expected


class TestStripping:
    """Test tag and slash stripping."""

    def test_strip_all_tags(self):
        assert strip_all_tags("<p>Hello <em>there</em></p>") == "Hello there"

    def test_strip_all_tags_removes_breaks(self):
        assert strip_all_tags("a\n\n b", remove_breaks=True) == "a b"

    def test_strip_slashes(self):
        assert strip_slashes('It\\\'s \\"quoted\\" \\\\ done') == 'It\'s "quoted" \\ done'

    def test_strip_slashes_none(self):
        assert strip_slashes(None) == ""


class TestHtmlSanitising:
    """Test rich text and link sanitising."""

    def test_post_html_keeps_allowed_tags(self):
        html = "<p>Hello <strong>world</strong></p><ul><li>one</li></ul>"
        assert sanitize_post_html(html) == html

    def test_post_html_drops_scripts_and_handlers(self):
        cleaned = sanitize_post_html('<p onclick="x()">Hi</p><script>alert(1)</script><iframe src="x"></iframe>')
        assert cleaned == "<p>Hi</p>"

    def test_link_html_keeps_only_links(self):
        cleaned = sanitize_link_html('<p>See <a href="https://example.com" class="x">docs</a></p>')
        assert "<p>" not in cleaned
        assert 'href="https://example.com"' in cleaned
        assert 'class=' not in cleaned


class TestAbsint:
    """Test non-negative integer coercion."""

    @pytest.mark.parametrize("raw,expected", [
        ("12", 12),
        ("12abc", 12),
        ("-5", 5),
        ("abc", 0),
        ("", 0),
        (None, 0),
        (7, 7),
        (-7, 7),
        (3.9, 3),
        (True, 1),
    ])
    def test_absint(self, raw, expected):
        assert absint(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("-5", -5),
        ("+3x", 3),
        ("abc", 0),
        (-7, -7),
    ])
    def test_leading_int_keeps_sign(self, raw, expected):
        assert leading_int(raw) == expected


class TestJoinClasses:
    """Test CSS class joining."""

    def test_join(self):
        assert join_classes(["a", "b"]) == "a b"
        assert join_classes("a") == "a"
        assert join_classes(None) == ""


class TestValidators:
    """Test contact validators."""

    @pytest.mark.parametrize("value,expected", [
        ("user@example.com", True),
        ("first.last+jobs@example.co.uk", True),
        ("http://example.com", False),
        ("not an email", False),
        ("", False),
        (None, False),
    ])
    def test_is_email(self, value, expected):
        assert is_email(value) is expected

    def test_validate_url(self):
        assert validate_url("https://example.com/apply") == (True, None)
        assert validate_url("example") == (False, "Invalid URL format")
        assert validate_url("") == (False, "URL is required")
