"""Cooking session: the photo → ingredients → recipes flow as a state machine.

Front ends (the CLI, or any UI) drive a CookingSession and render its state.
The session never raises out of ``analyze``, ``generate`` or the history
actions: failures are mapped to ``needs_api_key`` (missing credential) or a
generic retryable ``error`` message, and ``loading`` always returns to False.

Each model call takes a monotonic request token. When a call completes after a
newer call started (or after ``reset``), its result is discarded instead of
overwriting newer state.
"""

import itertools
from typing import Optional, Sequence

from recetas.models.models import HistoryItem, Preferences, Recipe
from recetas.services.ingredients import ImageSource, extract_ingredients
from recetas.services.recipes import generate_recipes
from recetas.storage.history import HistoryStore
from recetas.utils.errors import MissingCredential
from recetas.utils.logger import logger

ANALYZE_ERROR = "Could not analyze the photos. Check your connection and try again."
GENERATE_ERROR = "Could not generate recipes. Please try again."
HISTORY_SAVE_ERROR = "Recipes were generated but could not be saved to history. Please try again."
HISTORY_UPDATE_ERROR = "Could not update history. Please try again."
MISSING_KEY_MESSAGE = "A Gemini API key is required. Set GEMINI_API_KEY in your environment or .env file."


class CookingSession:
    """State for one user working through the recipe flow."""

    _session_ids = itertools.count(1)

    def __init__(self, history_store: HistoryStore, preferences: Optional[Preferences] = None) -> None:
        self.session_id = next(self._session_ids)
        self.history_store = history_store
        self.preferences = preferences or Preferences()
        self.ingredients: list[str] = []
        self.recipes: list[Recipe] = []
        self.history: list[HistoryItem] = history_store.load()
        self.error: Optional[str] = None
        self.needs_api_key = False
        self.loading = False
        self.editing_ingredients = False
        self._request_seq = 0

    def _next_request(self) -> int:
        self._request_seq += 1
        return self._request_seq

    def _is_current(self, token: int) -> bool:
        return token == self._request_seq

    def _log_extra(self, token: int) -> dict:
        return {"request_id": token, "session_id": self.session_id}

    def _fail(self, token: int, exc: Exception, message: str) -> None:
        if not self._is_current(token):
            logger.debug("Ignoring failure of a superseded request", extra=self._log_extra(token))
            return
        if isinstance(exc, MissingCredential):
            logger.error(f"Missing credential: {exc}", extra=self._log_extra(token))
            self.needs_api_key = True
        else:
            logger.error(f"{message} ({type(exc).__name__}: {exc})", extra=self._log_extra(token))
            self.error = message

    async def analyze(self, images: Sequence[ImageSource]) -> None:
        """Detect ingredients in ``images`` and enter ingredient editing mode."""
        if not images:
            return

        token = self._next_request()
        self.loading = True
        self.error = None
        try:
            detected = await extract_ingredients(images)
        except Exception as e:
            self._fail(token, e, ANALYZE_ERROR)
        else:
            if self._is_current(token):
                self.ingredients = list(detected)
                self.editing_ingredients = True
            else:
                logger.debug("Discarding stale extraction result", extra=self._log_extra(token))
        finally:
            if self._is_current(token):
                self.loading = False

    def add_ingredient(self, name: str) -> None:
        name = name.strip()
        if name:
            self.ingredients.append(name)

    def remove_ingredient(self, index: int) -> None:
        if 0 <= index < len(self.ingredients):
            del self.ingredients[index]

    def set_preferences(self, **changes) -> Preferences:
        """Replace preferences with an updated copy (validated)."""
        self.preferences = Preferences.model_validate({**self.preferences.model_dump(), **changes})
        return self.preferences

    async def generate(self) -> None:
        """Generate recipes for the current ingredients and record them in history."""
        if not self.ingredients:
            return

        token = self._next_request()
        ingredients = list(self.ingredients)
        preferences = self.preferences.model_copy()
        self.loading = True
        self.error = None
        try:
            generated = await generate_recipes(ingredients, preferences)
        except Exception as e:
            self._fail(token, e, GENERATE_ERROR)
        else:
            if self._is_current(token):
                self._show_recipes(token, ingredients, generated)
            else:
                logger.debug("Discarding stale generation result", extra=self._log_extra(token))
        finally:
            if self._is_current(token):
                self.loading = False

    def _show_recipes(self, token: int, ingredients: list[str], generated: list[Recipe]) -> None:
        # Recipes are shown only once they are in history, so the two never disagree
        try:
            history = self.history_store.record(ingredients, generated)
        except Exception as e:
            self._fail(token, e, HISTORY_SAVE_ERROR)
            return
        self.recipes = generated
        self.history = history
        self.editing_ingredients = False

    def configure_api_key(self) -> None:
        """Acknowledge the configuration prompt once the key has been provided."""
        self.needs_api_key = False
        self.error = None

    def select_history(self, item_id: str) -> Optional[HistoryItem]:
        """Show a past generation again."""
        item = self.history_store.get(item_id)
        if item is not None:
            self.ingredients = list(item.ingredients)
            self.recipes = list(item.recipes)
            self.editing_ingredients = False
        return item

    def _update_history(self, action) -> None:
        try:
            self.history = action()
        except Exception as e:
            logger.error(f"{HISTORY_UPDATE_ERROR} ({type(e).__name__}: {e})", extra={"session_id": self.session_id})
            self.error = HISTORY_UPDATE_ERROR

    def delete_history(self, item_id: str) -> None:
        self._update_history(lambda: self.history_store.remove(item_id))

    def clear_history(self) -> None:
        self._update_history(self.history_store.clear)

    def reset(self) -> None:
        """Start over; results of in-flight requests will be discarded."""
        self._next_request()
        self.ingredients = []
        self.recipes = []
        self.editing_ingredients = False
        self.loading = False
        self.error = None
