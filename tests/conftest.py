# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Provides an InMemoryStore seeded with rates and platforms
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from datetime import date  # noqa: E402

import pytest  # noqa: E402

from tests.fakes import InMemoryStore  # noqa: E402

MODEL_ID = "6f1c0c8e-0000-4000-8000-000000000001"
OTHER_MODEL_ID = "6f1c0c8e-0000-4000-8000-000000000002"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def model_id():
    """Id of the model most tests close."""
    return MODEL_ID


@pytest.fixture
def store():
    """
    In-memory store with the reference data used across tests.

    Rates: usd_cop=4000, eur_usd=1.0, gbp_usd=1.2
    Platforms: chaturbate, myfreecams, camsoda, superfoon, dxlive (USD),
               big7 (EUR), aw (GBP)
    """
    s = InMemoryStore()
    s.set_rates(usd_cop=4000, eur_usd=1.0, gbp_usd=1.2)
    s.add_platform("chaturbate", "USD", "Chaturbate")
    s.add_platform("myfreecams", "USD", "MyFreeCams")
    s.add_platform("camsoda", "USD", "CamSoda")
    s.add_platform("big7", "EUR", "BIG7")
    s.add_platform("aw", "GBP", "AdultWork")
    s.add_platform("superfoon", "USD", "SUPER FOON")
    s.add_platform("dxlive", "USD", "DX Live")
    s.model_ids = [MODEL_ID]
    return s


@pytest.fixture
def march_first_half():
    """(period_date, period_type) of 2025-03-01..15."""
    return date(2025, 3, 1), "1-15"
