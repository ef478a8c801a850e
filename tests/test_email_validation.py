"""Tests for the input validation done before any NexHealth call."""

from __future__ import annotations

import pytest

from src.tools.booking import _parse_start_time, _validate_date_of_birth, _validate_email


class TestValidateEmail:
    """Unit tests for the _validate_email helper."""

    @pytest.mark.parametrize(
        "email",
        [
            "alice@example.com",
            "bob.jones@clinic.co.uk",
            "jane+tag@gmail.com",
            "UPPER@CASE.COM",
            " padded@example.com ",
        ],
    )
    def test_accepts_valid_emails(self, email: str):
        assert _validate_email(email) is None

    @pytest.mark.parametrize(
        "email",
        [
            "not-an-email",
            "missing@",
            "@no-local.com",
            "spaces in@email.com",
            "double@@at.com",
            "no-tld@localhost",
        ],
    )
    def test_rejects_invalid_emails(self, email: str):
        assert "does not look like a valid email" in _validate_email(email)

    @pytest.mark.parametrize("email", ["", "   "])
    def test_rejects_missing_email(self, email: str):
        assert "No email" in _validate_email(email)


class TestValidateDateOfBirth:
    @pytest.mark.parametrize("value", ["1990-05-17", " 2001-12-31 "])
    def test_accepts_iso_dates(self, value: str):
        assert _validate_date_of_birth(value) is None

    @pytest.mark.parametrize("value", ["05/17/1990", "May 17 1990", "1990-13-01", ""])
    def test_rejects_other_formats(self, value: str):
        assert "YYYY-MM-DD" in _validate_date_of_birth(value)

    def test_rejects_future_dates(self):
        assert "future" in _validate_date_of_birth("2999-01-01")


class TestParseStartTime:
    def test_accepts_utc_suffix(self):
        parsed = _parse_start_time("2026-03-03T14:30:00Z")
        assert parsed is not None
        assert parsed.utcoffset().total_seconds() == 0

    def test_rejects_free_text(self):
        assert _parse_start_time("tomorrow afternoon") is None
