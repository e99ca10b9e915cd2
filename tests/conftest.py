"""Shared pytest fixtures.

Unit tests never reach the network: the Gemini client class is replaced by a
MagicMock and retry delays are replaced by an AsyncMock.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from recetas.services import gemini_client
from recetas.utils.config import config

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + b"\x00" * 16
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 16


def make_recipe(recipe_id: str = "1", name: str = "Tostada con huevo", **overrides) -> dict:
    """Schema-conforming recipe object as the model would return it."""
    recipe = {
        "id": recipe_id,
        "name": name,
        "time": "15 min",
        "difficulty": "easy",
        "servings": 2,
        "ingredients": [
            {"name": "huevo", "hasIt": True},
            {"name": "pan", "hasIt": True},
            {"name": "aguacate", "hasIt": False},
        ],
        "missingIngredients": ["aguacate"],
        "steps": ["Tostar el pan.", "Freír el huevo.", "Servir."],
        "tips": "Añade pimienta al final.",
    }
    recipe.update(overrides)
    return recipe


@pytest.fixture
def recipe_factory():
    return make_recipe


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def jpeg_bytes():
    return JPEG_BYTES


@pytest.fixture(autouse=True)
def api_key(monkeypatch):
    """Configure a fake API key and a fresh client cache for every test."""
    monkeypatch.setattr(config, "GEMINI_API_KEY", "test-key")
    gemini_client.reset_client()
    yield "test-key"
    gemini_client.reset_client()


@pytest.fixture(autouse=True)
def no_sleep():
    """Replace backoff sleeps so retry tests run instantly and can inspect delays."""
    with patch("recetas.utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


@pytest.fixture
def genai_client():
    """Patch genai.Client; returns the client instance used by the call layer.

    Set ``genai_client.models.generate_content.return_value.text`` (or use
    ``respond_with``) to control the model output.
    """
    with patch("recetas.services.gemini_client.genai.Client") as mock_client_cls:
        client = MagicMock()
        mock_client_cls.return_value = client
        client.constructor = mock_client_cls
        yield client


@pytest.fixture
def respond_with(genai_client):
    """Set the model response text (str) or JSON-serializable body."""

    def _respond(body):
        text = body if isinstance(body, str) else json.dumps(body)
        genai_client.models.generate_content.return_value = MagicMock(text=text)
        return genai_client

    return _respond
