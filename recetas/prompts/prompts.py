"""Prompts and response schemas for the two model calls.

Provides factory functions for:
- The ingredient extraction instruction (sent after the image parts)
- The recipe generation prompt (ingredients + every preference field + policy rules)
- The JSON response schemas the model output is constrained to

Schemas are built with google.genai ``types.Schema`` so the SDK sends them as
``responseSchema`` together with ``responseMimeType: application/json``.
"""

from typing import Sequence

from google.genai import types

from recetas.models.models import DIFFICULTY_LEVELS, Preferences
from recetas.utils.config import config

# Basic staples any kitchen is assumed to have; never counted as missing
PANTRY_STAPLES: tuple[str, ...] = ("salt", "oil", "water", "pepper", "flour", "sugar")

MIN_RECIPES = 2
MAX_RECIPES = 3


def get_extraction_prompt(language: str | None = None) -> str:
    """Build the fixed instruction sent with the images.

    Args:
        language: Language for ingredient names. Default: config.RECIPE_LANGUAGE.

    Returns:
        str: Instruction text for the extraction call.
    """
    language = language or config.RECIPE_LANGUAGE
    return f"""Analyze these photos of food ingredients.
Identify each food item individually.
Return a clean list of ingredient names in {language}, one entry per distinct food.
Be precise about what you actually see: if you see half a lemon, write 'lemon'.
Do not list plates, packaging, utensils or anything that is not food.
Respond with a JSON object containing a single field "ingredients": an array of strings."""


def _format_preferences(preferences: Preferences) -> str:
    lines = [f"- Servings: {preferences.servings} people"]
    for _, label, enabled in preferences.flags():
        lines.append(f"- {label}: {'yes' if enabled else 'no'}")
    lines.append(f"- Exclusions / allergies: {preferences.allergies or 'none'}")
    return "\n".join(lines)


def build_recipe_prompt(
    ingredients: Sequence[str],
    preferences: Preferences,
    language: str | None = None,
) -> str:
    """Build the recipe generation prompt.

    Embeds the ingredient list (in the given order) and every preference field,
    followed by the policy rules the model must follow.

    Args:
        ingredients: Ingredient names confirmed by the user.
        preferences: Dietary preferences for this request.
        language: Language for recipe text. Default: config.RECIPE_LANGUAGE.

    Returns:
        str: Complete prompt for the generation call.
    """
    language = language or config.RECIPE_LANGUAGE
    staples = ", ".join(PANTRY_STAPLES)
    difficulties = " or ".join(f'"{level}"' for level in DIFFICULTY_LEVELS)
    vegetarian_rule = (
        "All recipes MUST be vegetarian: no meat, poultry or fish."
        if preferences.vegetarian
        else "Any diet is fine."
    )

    return f"""Act as a creative home chef. I have these ingredients: {", ".join(ingredients)}.

## Preferences
{_format_preferences(preferences)}

## Golden rules
1. Recipes MUST be based on the listed ingredients. Prefer them over anything else.
2. You may also use these basic pantry staples: {staples}. Do NOT list them as missing ingredients.
3. Treat the exclusions ({preferences.allergies or "none"}) as a hard constraint: never use them.
4. Be coherent: if I only have bread and tomato, suggest bread with tomato or similar, not a lasagna.
5. Adapt quantities to {preferences.servings} servings. {vegetarian_rule}
6. Difficulty must be {difficulties}, nothing else.
7. Return between {MIN_RECIPES} and {MAX_RECIPES} recipe options.

## Output
Return a JSON array of recipe objects. For every recipe:
- "ingredients" lists each ingredient used, with "hasIt" true when it is in my list or a pantry staple.
- "missingIngredients" lists every ingredient with "hasIt" false.
- "steps" are short, ordered instructions.
- "tips" is an optional short tip.
Write names, steps and tips in {language}. Keep "difficulty" values exactly as specified."""


def ingredient_list_schema() -> types.Schema:
    """Schema for the extraction response: ``{"ingredients": [str, ...]}``."""
    return types.Schema(
        type=types.Type.OBJECT,
        properties={
            "ingredients": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.STRING),
            ),
        },
        required=["ingredients"],
    )


def recipe_list_schema() -> types.Schema:
    """Schema for the generation response: an array of recipe objects."""
    return types.Schema(
        type=types.Type.ARRAY,
        items=types.Schema(
            type=types.Type.OBJECT,
            properties={
                "id": types.Schema(type=types.Type.STRING),
                "name": types.Schema(type=types.Type.STRING),
                "time": types.Schema(type=types.Type.STRING),
                "difficulty": types.Schema(type=types.Type.STRING, enum=list(DIFFICULTY_LEVELS)),
                "servings": types.Schema(type=types.Type.INTEGER),
                "ingredients": types.Schema(
                    type=types.Type.ARRAY,
                    items=types.Schema(
                        type=types.Type.OBJECT,
                        properties={
                            "name": types.Schema(type=types.Type.STRING),
                            "hasIt": types.Schema(type=types.Type.BOOLEAN),
                        },
                        required=["name", "hasIt"],
                    ),
                ),
                "missingIngredients": types.Schema(
                    type=types.Type.ARRAY,
                    items=types.Schema(type=types.Type.STRING),
                ),
                "steps": types.Schema(
                    type=types.Type.ARRAY,
                    items=types.Schema(type=types.Type.STRING),
                ),
                "tips": types.Schema(type=types.Type.STRING),
            },
            required=["id", "name", "time", "difficulty", "servings", "ingredients", "missingIngredients", "steps"],
        ),
    )
