"""Integration tests against the live Gemini API.

Run with: pytest tests/integration -v
Requires GEMINI_API_KEY in the environment or .env.

Features:
- Ingredient extraction from a locally drawn image
- Recipe generation honoring the response schema
- The full session flow with file-backed history
"""

from io import BytesIO

import pytest
from PIL import Image, ImageDraw

from recetas.flow.session import CookingSession
from recetas.models.models import DIFFICULTY_LEVELS, Preferences
from recetas.services.ingredients import extract_ingredients
from recetas.services.recipes import generate_recipes
from recetas.storage.history import FileStorage, HistoryStore
from recetas.utils.errors import TransientServiceUnavailable
from recetas.utils.logger import logger


def tomato_image() -> bytes:
    """Draw a crude tomato: a red disc with a green stem."""
    img = Image.new("RGB", (512, 512), (255, 255, 255))
    draw = ImageDraw.Draw(img)
    draw.ellipse((96, 128, 416, 448), fill=(215, 30, 30))
    draw.rectangle((244, 80, 268, 140), fill=(40, 140, 40))
    buffer = BytesIO()
    img.save(buffer, format="JPEG")
    return buffer.getvalue()


async def call_or_skip(coro):
    """Await a live call, skipping the test if the service stays overloaded."""
    try:
        return await coro
    except TransientServiceUnavailable as e:
        pytest.skip(f"Model service overloaded: {e}")


class TestExtraction:
    @pytest.mark.asyncio
    async def test_extract_returns_string_list(self):
        ingredients = await call_or_skip(extract_ingredients([tomato_image()]))

        logger.info(f"✓ Extracted: {ingredients}")
        assert isinstance(ingredients, list)
        assert all(isinstance(name, str) for name in ingredients)


class TestGeneration:
    @pytest.mark.asyncio
    async def test_generate_recipes_matches_schema(self):
        prefs = Preferences(quick=True, vegetarian=True, servings=2)

        recipes = await call_or_skip(generate_recipes(["huevo", "pan", "tomate"], prefs))

        logger.info(f"✓ Generated: {[recipe.name for recipe in recipes]}")
        assert 1 <= len(recipes) <= 3
        for recipe in recipes:
            assert recipe.difficulty in DIFFICULTY_LEVELS
            assert recipe.steps
            assert recipe.ingredients


class TestSessionFlow:
    @pytest.mark.asyncio
    async def test_flow_persists_history(self, tmp_path):
        store = HistoryStore(FileStorage(tmp_path))
        session = CookingSession(store, Preferences(servings=1))
        session.add_ingredient("arroz")
        session.add_ingredient("huevo")

        await session.generate()

        if session.error:
            pytest.skip(f"Generation failed against the live service: {session.error}")
        assert session.recipes
        assert HistoryStore(FileStorage(tmp_path)).items[0].ingredients == ["arroz", "huevo"]
