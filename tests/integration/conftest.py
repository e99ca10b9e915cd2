"""Pytest configuration and fixtures for integration tests.

Ensures environment variables are loaded and skips the suite when no Gemini
API key is available. These tests call the real model service.
"""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv


def pytest_configure(config):
    """Load .env before collection so recetas.utils.config sees the key."""
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path)

    print("\n" + "=" * 70)
    print("Note: These tests require a valid GEMINI_API_KEY (or API_KEY)")
    print(f"Environment loaded from: {env_path}")
    print("=" * 70 + "\n")


@pytest.fixture(autouse=True)
def api_key(monkeypatch):
    """Use the real key from the environment instead of the unit-test fake.

    Overrides the autouse ``api_key`` fixture from tests/conftest.py and skips
    when no key is configured.
    """
    from recetas.services import gemini_client
    from recetas.utils.config import config

    key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    if not key:
        pytest.skip("Integration tests skipped. Missing GEMINI_API_KEY. Please set it in your .env file.")

    monkeypatch.setattr(config, "GEMINI_API_KEY", key)
    gemini_client.reset_client()
    yield key
    gemini_client.reset_client()


@pytest.fixture(autouse=True)
def no_sleep():
    """Keep real backoff delays: the live service decides when it recovers."""
    yield None
