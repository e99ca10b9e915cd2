"""Recipe generation from a confirmed ingredient list and preferences."""

from typing import Sequence

from pydantic import TypeAdapter, ValidationError

from recetas.models.models import Preferences, Recipe
from recetas.prompts.prompts import build_recipe_prompt, recipe_list_schema
from recetas.services.gemini_client import generate_json, parse_json
from recetas.utils.config import config
from recetas.utils.errors import MalformedResponse
from recetas.utils.logger import logger

_RECIPE_LIST = TypeAdapter(list[Recipe])


def parse_recipes_response(response_text: str) -> list[Recipe]:
    """Parse the generation response into Recipe objects, preserving order.

    An empty array is a valid result.

    Raises:
        MalformedResponse: If the body is not a JSON array of recipe objects.
    """
    data = parse_json(response_text)
    if not isinstance(data, list):
        raise MalformedResponse(f"Expected a JSON array of recipes, got {type(data).__name__}", raw=response_text)

    try:
        return _RECIPE_LIST.validate_python(data)
    except ValidationError as e:
        raise MalformedResponse(
            f"Recipe response does not match the schema ({e.error_count()} errors): {e}", raw=response_text
        ) from e


async def generate_recipes(ingredients: Sequence[str], preferences: Preferences) -> list[Recipe]:
    """Ask the model for 2-3 recipes built from ``ingredients``.

    Issues exactly one model request (excluding transient-overload retries).

    Args:
        ingredients: Confirmed ingredient names, sent in the given order.
        preferences: Dietary preferences for this request.

    Returns:
        Recipes in the order returned by the model.

    Raises:
        ValueError: If ``ingredients`` is empty (callers treat that as a no-op).
        MissingCredential: No API key configured (raised before any request).
        TransientServiceUnavailable: Service still overloaded after retries.
        ServiceError: Any other rejection by the service.
        MalformedResponse: Response body is not the declared shape.
    """
    if not ingredients:
        raise ValueError("At least one ingredient is required to generate recipes")

    prompt = build_recipe_prompt(list(ingredients), preferences)

    logger.info(
        f"Generating recipes for {len(ingredients)} ingredient(s), {preferences.servings} serving(s), "
        f"flags={preferences.active_flags()} with {config.GEMINI_MODEL}"
    )
    response_text = await generate_json(
        model=config.GEMINI_MODEL,
        contents=prompt,
        schema=recipe_list_schema(),
        thinking_budget=config.THINKING_BUDGET or None,
    )

    recipes = parse_recipes_response(response_text)
    logger.info(f"Generated {len(recipes)} recipe(s): {[recipe.name for recipe in recipes]}")
    return recipes
