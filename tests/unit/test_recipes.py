"""Unit tests for recipe generation and the generation prompt."""

import json

import pytest

from recetas.models.models import Preferences
from recetas.prompts.prompts import PANTRY_STAPLES, build_recipe_prompt
from recetas.services.recipes import generate_recipes, parse_recipes_response
from recetas.utils.config import config
from recetas.utils.errors import MalformedResponse, MissingCredential, TransientServiceUnavailable


@pytest.fixture
def prefs():
    return Preferences(quick=True, vegetarian=True, servings=2, allergies="nueces")


class TestBuildRecipePrompt:
    def test_ingredients_in_order(self, prefs):
        prompt = build_recipe_prompt(["huevo", "pan", "tomate"], prefs)
        assert "huevo, pan, tomate" in prompt

    def test_every_preference_rendered(self, prefs):
        prompt = build_recipe_prompt(["huevo"], prefs)
        assert "- Servings: 2 people" in prompt
        assert "- Quick (under 30 minutes): yes" in prompt
        assert "- Healthy: no" in prompt
        assert "- No oven: no" in prompt
        assert "- Vegetarian: yes" in prompt
        assert "- Exclusions / allergies: nueces" in prompt
        assert "MUST be vegetarian" in prompt

    def test_empty_exclusions_render_none(self):
        prompt = build_recipe_prompt(["huevo"], Preferences())
        assert "- Exclusions / allergies: none" in prompt
        assert "Any diet is fine." in prompt

    def test_policy_rules(self, prefs):
        prompt = build_recipe_prompt(["huevo"], prefs)
        for staple in PANTRY_STAPLES:
            assert staple in prompt
        assert '"easy" or "medium"' in prompt
        assert "between 2 and 3 recipe options" in prompt

    def test_language(self, prefs):
        assert "in Italian" in build_recipe_prompt(["huevo"], prefs, language="Italian")
        assert f"in {config.RECIPE_LANGUAGE}" in build_recipe_prompt(["huevo"], prefs)


class TestParseRecipesResponse:
    def test_valid_array(self, recipe_factory):
        recipes = parse_recipes_response(json.dumps([recipe_factory("1"), recipe_factory("2", name="Pan con tomate")]))
        assert [recipe.id for recipe in recipes] == ["1", "2"]
        assert recipes[0].missing_ingredients == ["aguacate"]
        assert recipes[0].owned_ingredients() == ["huevo", "pan"]

    def test_empty_array(self):
        assert parse_recipes_response("[]") == []

    def test_fenced_array(self):
        assert parse_recipes_response("```json\n[]\n```") == []

    def test_object_instead_of_array(self, recipe_factory):
        with pytest.raises(MalformedResponse):
            parse_recipes_response(json.dumps({"recipes": [recipe_factory()]}))

    def test_missing_required_field(self, recipe_factory):
        recipe = recipe_factory()
        del recipe["steps"]
        with pytest.raises(MalformedResponse) as exc:
            parse_recipes_response(json.dumps([recipe]))
        assert exc.value.raw

    def test_unknown_difficulty(self, recipe_factory):
        with pytest.raises(MalformedResponse):
            parse_recipes_response(json.dumps([recipe_factory(difficulty="hard")]))

    def test_prose(self):
        with pytest.raises(MalformedResponse):
            parse_recipes_response("Here are two recipes you can make...")


class TestGenerateRecipes:
    @pytest.mark.asyncio
    async def test_returns_model_recipes_in_order(self, respond_with, recipe_factory):
        prefs = Preferences(servings=2, vegetarian=True, allergies="", quick=False, healthy=False, noOven=False)
        body = [recipe_factory("1"), recipe_factory("2", name="Huevos rotos", difficulty="medium", tips=None)]
        body[1].pop("tips")
        client = respond_with(body)

        recipes = await generate_recipes(["huevo", "pan"], prefs)

        assert [recipe.model_dump(by_alias=True, exclude_none=True) for recipe in recipes] == body
        client.models.generate_content.assert_called_once()

    @pytest.mark.asyncio
    async def test_request_contract(self, respond_with, prefs, monkeypatch):
        monkeypatch.setattr(config, "THINKING_BUDGET", 4000)
        client = respond_with([])

        await generate_recipes(["huevo", "pan"], prefs)

        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == config.GEMINI_MODEL
        assert "huevo, pan" in kwargs["contents"]
        cfg = kwargs["config"]
        assert cfg.response_mime_type == "application/json"
        assert cfg.response_schema.items.properties["difficulty"].enum == ["easy", "medium"]
        assert "missingIngredients" in cfg.response_schema.items.required
        assert cfg.thinking_config.thinking_budget == 4000

    @pytest.mark.asyncio
    async def test_zero_thinking_budget_omitted(self, respond_with, prefs, monkeypatch):
        monkeypatch.setattr(config, "THINKING_BUDGET", 0)
        client = respond_with([])

        await generate_recipes(["huevo"], prefs)

        assert client.models.generate_content.call_args.kwargs["config"].thinking_config is None

    @pytest.mark.asyncio
    async def test_empty_result_is_valid(self, respond_with, prefs):
        respond_with([])
        assert await generate_recipes(["huevo"], prefs) == []

    @pytest.mark.asyncio
    async def test_numeric_id_coerced(self, respond_with, recipe_factory, prefs):
        respond_with([recipe_factory(recipe_id=7)])
        recipes = await generate_recipes(["huevo"], prefs)
        assert recipes[0].id == "7"

    @pytest.mark.asyncio
    async def test_empty_ingredients_rejected(self, genai_client, prefs):
        with pytest.raises(ValueError):
            await generate_recipes([], prefs)
        genai_client.models.generate_content.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_credential(self, genai_client, prefs, monkeypatch):
        monkeypatch.setattr(config, "GEMINI_API_KEY", "")
        with pytest.raises(MissingCredential):
            await generate_recipes(["huevo"], prefs)
        genai_client.models.generate_content.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed(self, respond_with, prefs):
        respond_with({"not": "an array"})
        with pytest.raises(MalformedResponse):
            await generate_recipes(["huevo"], prefs)

    @pytest.mark.asyncio
    async def test_overloaded(self, genai_client, prefs):
        genai_client.models.generate_content.side_effect = TransientServiceUnavailable("busy")
        with pytest.raises(TransientServiceUnavailable):
            await generate_recipes(["huevo"], prefs)
        assert genai_client.models.generate_content.call_count == config.MAX_RETRIES + 1
