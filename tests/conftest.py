"""Shared test fixtures for the dental voice agent test suite."""

from __future__ import annotations

import os

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py resolves every secret
    without warnings and never reaches for SSM.
    """
    os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
    os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
    os.environ.setdefault("NEXHEALTH_API_KEY", "test-nexhealth-key-789")
    os.environ.setdefault("METRICS_ENABLED", "false")


@pytest.fixture
def business_row() -> dict:
    """A ``businesses`` row as Supabase returns it."""
    return {
        "id": "biz-123",
        "name": "Bright Smile Dental",
        "phone_no": "555-0100",
        "practice_software": "OpenDental",
        "no_show_fees": 50,
        "address": "12 Main St, Springfield",
        "operating_hours": {
            "monday": "9:00 AM - 5:00 PM",
            "tuesday": "9:00 AM - 5:00 PM",
            "wednesday": "Closed",
            "thursday": "10:00 AM - 6:00 PM",
            "friday": "9:00 AM - 1:00 PM",
            "saturday": "closed",
            "sunday": None,
        },
        "services": ["Cleanings", "Fillings", "Whitening"],
        "pms_provider": "nexhealth",
        "nexhealth_subdomain": "bright-smile",
        "nexhealth_location_id": "4321",
        "dental_bridge_location_id": None,
    }


@pytest.fixture
def agent_row() -> dict:
    """A ``business_agents`` row as Supabase returns it."""
    return {
        "business_id": "biz-123",
        "agent_name": "Sarah",
        "greeting_text": "Hi, thanks for calling Bright Smile Dental! This is Sarah.",
        "pretendence": False,
        "voice": "Kore",
    }


@pytest.fixture
def business_config(business_row, agent_row):
    from src.services.business_config import business_config_from_rows

    return business_config_from_rows(business_row, agent_row)
