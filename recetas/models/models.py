"""Data models and schemas for Recetas.

Defines Pydantic models for preferences, generated recipes, history items and
image payloads. All models use Pydantic v2; recipe and history models serialize
with camelCase aliases, the same shape the model is asked to produce and the
shape persisted in history storage.
"""

from typing import List, Literal, Optional, Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

Difficulty = Literal["easy", "medium"]
DIFFICULTY_LEVELS: tuple[str, ...] = ("easy", "medium")

# (field name, display label) for every boolean dietary flag on Preferences.
# Iterate this table instead of indexing preferences by arbitrary string keys.
PREFERENCE_FLAGS: tuple[tuple[str, str], ...] = (
    ("quick", "Quick (under 30 minutes)"),
    ("healthy", "Healthy"),
    ("no_oven", "No oven"),
    ("vegetarian", "Vegetarian"),
)


class Preferences(BaseModel):
    """Dietary preferences for one generation request.

    A pure value object, rebuilt for every request. ``servings`` is bounded
    1-8 by the front ends only; the request contract accepts any integer.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    quick: bool = False
    healthy: bool = False
    no_oven: Annotated[bool, Field(False, alias="noOven")]
    vegetarian: bool = False
    servings: Annotated[int, Field(2, description="Number of people to cook for")]
    allergies: Annotated[str, Field("", description="Free-text exclusions and allergies")]

    def flags(self) -> list[tuple[str, str, bool]]:
        """Return ``(field, label, enabled)`` for every dietary flag."""
        return [(name, label, getattr(self, name)) for name, label in PREFERENCE_FLAGS]

    def active_flags(self) -> list[str]:
        """Return the labels of the enabled dietary flags."""
        return [label for _, label, enabled in self.flags() if enabled]


class RecipeIngredient(BaseModel):
    """One ingredient used by a recipe, and whether the user already has it."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    has_it: Annotated[bool, Field(alias="hasIt")]


class Recipe(BaseModel):
    """Domain model for a generated recipe.

    ``id`` is supplied by the model and is not guaranteed to be unique.
    Ingredients marked ``has_it=False`` should appear in ``missing_ingredients``,
    but that correspondence is produced by the model and not validated here.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Annotated[str, Field(description="Model-supplied identifier")]
    name: Annotated[str, Field(description="Display name")]
    time: Annotated[str, Field(description="Free-text time estimate, e.g. '20 min'")]
    difficulty: Difficulty
    servings: int
    ingredients: List[RecipeIngredient]
    missing_ingredients: Annotated[List[str], Field(alias="missingIngredients")]
    steps: List[str]
    tips: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        """Accept numeric ids; the model occasionally returns 1 instead of "1"."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    def owned_ingredients(self) -> list[str]:
        return [ingredient.name for ingredient in self.ingredients if ingredient.has_it]

    def to_buy(self) -> list[str]:
        return list(self.missing_ingredients)


class HistoryItem(BaseModel):
    """One persisted (ingredients, recipes) pair."""

    model_config = ConfigDict(populate_by_name=True)

    id: Annotated[str, Field(description="Client-generated random token")]
    timestamp: Annotated[int, Field(ge=0, description="Creation time in epoch milliseconds")]
    ingredients: List[str]
    recipes: List[Recipe]


class ImagePayload(BaseModel):
    """An image ready to be sent inline to the model."""

    mime_type: Annotated[str, Field(min_length=1)]
    data: Annotated[bytes, Field(min_length=1)]

    @property
    def size_kb(self) -> float:
        return len(self.data) / 1024
