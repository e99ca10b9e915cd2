"""Gemini client access and JSON-constrained generation.

Single place where the google-genai SDK is called:
- resolve_api_key(): credential from configuration, MissingCredential if absent
- get_client(): lazily created client, rebuilt when the resolved key changes
- generate_json(): one schema-constrained call wrapped in with_retry, SDK errors
  translated into the Recetas taxonomy
- strip_code_fence() / parse_json(): response cleanup shared by both services
"""

import asyncio
import json
import re
from typing import Any, Optional, Union

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from recetas.utils.config import config
from recetas.utils.errors import MalformedResponse, MissingCredential, ServiceError, TransientServiceUnavailable
from recetas.utils.logger import logger
from recetas.utils.retry import is_transient_overload, with_retry

_OPENING_FENCE = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\s*```\s*$")

_client: Optional[genai.Client] = None
_client_key: Optional[str] = None


def resolve_api_key() -> str:
    """Resolve the Gemini API key from the current configuration.

    Returns:
        The non-blank API key.

    Raises:
        MissingCredential: If GEMINI_API_KEY (or API_KEY) is unset or blank.
    """
    api_key = (config.GEMINI_API_KEY or "").strip()
    if not api_key:
        raise MissingCredential("GEMINI_API_KEY is not configured. Set it in the environment or .env file.")
    return api_key


def get_client(api_key: str) -> genai.Client:
    """Return the cached Gemini client, creating a new one if the key changed."""
    global _client, _client_key
    if _client is None or _client_key != api_key:
        logger.debug("Creating Gemini client")
        _client = genai.Client(api_key=api_key)
        _client_key = api_key
    return _client


def reset_client() -> None:
    """Drop the cached client (next call re-resolves the credential)."""
    global _client, _client_key
    _client = None
    _client_key = None


def build_generation_config(
    schema: types.Schema,
    thinking_budget: Optional[int] = None,
) -> types.GenerateContentConfig:
    """Build a JSON-mode generation config constrained to ``schema``.

    Args:
        schema: Response schema the output must conform to.
        thinking_budget: Reasoning token budget; None or 0 sends no thinking hint.

    Returns:
        GenerateContentConfig with response_mime_type="application/json".
    """
    kwargs: dict[str, Any] = {
        "response_mime_type": "application/json",
        "response_schema": schema,
    }
    if thinking_budget:
        kwargs["thinking_config"] = types.ThinkingConfig(thinking_budget=thinking_budget)
    if config.TEMPERATURE is not None:
        kwargs["temperature"] = config.TEMPERATURE
    return types.GenerateContentConfig(**kwargs)


def translate_error(exc: Exception) -> Exception:
    """Map an SDK/transport failure onto TransientServiceUnavailable or ServiceError."""
    status_code = exc.code if isinstance(exc, genai_errors.APIError) else None
    if is_transient_overload(exc):
        return TransientServiceUnavailable(f"Model service overloaded: {exc}", status_code=status_code or 503)
    return ServiceError(f"Model service rejected the request: {exc}", status_code=status_code)


async def generate_json(
    model: str,
    contents: Union[str, list],
    schema: types.Schema,
    thinking_budget: Optional[int] = None,
) -> str:
    """Issue one schema-constrained generation call and return the raw text.

    The credential is resolved before anything is sent. Only the SDK call is
    retried (transient overload only); parsing is left to the caller.

    Args:
        model: Gemini model identifier.
        contents: Prompt text, or a list of image parts followed by one text part.
        schema: Response schema.
        thinking_budget: Optional reasoning budget hint.

    Returns:
        Response text (empty string if the model returned no text).

    Raises:
        MissingCredential: No API key configured (no request is made).
        TransientServiceUnavailable: Overloaded after all retries.
        ServiceError: Any other rejection.
    """
    api_key = resolve_api_key()
    client = get_client(api_key)
    generation_config = build_generation_config(schema, thinking_budget=thinking_budget)

    async def _call() -> str:
        try:
            response = await asyncio.to_thread(
                client.models.generate_content,
                model=model,
                contents=contents,
                config=generation_config,
            )
        except Exception as e:
            raise translate_error(e) from e
        return response.text or ""

    logger.debug(f"Calling {model} (thinking_budget={thinking_budget})")
    return await with_retry(_call)


def strip_code_fence(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence, if present."""
    cleaned = _OPENING_FENCE.sub("", text, count=1)
    cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_json(text: str) -> Any:
    """Parse a (possibly fenced) JSON response body.

    Raises:
        MalformedResponse: If the body is empty or not valid JSON.
    """
    cleaned = strip_code_fence(text or "")
    if not cleaned:
        raise MalformedResponse("Model returned an empty response", raw=text or "")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Model response is not valid JSON: {e}", raw=text) from e
