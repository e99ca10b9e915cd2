"""Configuration management for Recetas.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults

The Gemini API key is intentionally not validated here: it is resolved once per
model call (see recetas.services.gemini_client.resolve_api_key) so that a
missing key surfaces as MissingCredential at call time instead of an import error.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Gemini API Key: API_KEY is accepted for compatibility with AI Studio style setups
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", "")
        # Recipe generation model (text only, benefits from a reasoning budget)
        self.GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-3-pro-preview")
        # Image Detection Model: separate model optimized for vision tasks
        self.IMAGE_DETECTION_MODEL: str = os.getenv("IMAGE_DETECTION_MODEL", "gemini-3-flash-preview")
        # Maximum number of images per extraction call. Default: 5
        self.MAX_IMAGES: int = int(os.getenv("MAX_IMAGES", "5"))
        # Maximum image size (in MB) that can be processed. Default: 5 MB
        self.MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "5"))
        # Image Compression: Enable/disable image compression before upload
        self.COMPRESS_IMG: bool = _env_bool("COMPRESS_IMG", "true")
        # Image Compression Threshold: Only compress images above this size (in KB)
        self.COMPRESS_IMG_THRESHOLD_KB: int = int(os.getenv("COMPRESS_IMG_THRESHOLD_KB", "300"))
        # Thinking Budget: reasoning tokens for the recipe generation call (0 disables the hint)
        self.THINKING_BUDGET: int = int(os.getenv("THINKING_BUDGET", "4000"))
        # Temperature: unset leaves the model default in place
        temperature = os.getenv("TEMPERATURE")
        self.TEMPERATURE: Optional[float] = float(temperature) if temperature else None
        # Language used for recipe names, steps and tips
        self.RECIPE_LANGUAGE: str = os.getenv("RECIPE_LANGUAGE", "Spanish")

        # Retry Configuration - only transient overload (503) is retried
        # MAX_RETRIES: Number of retries after the first attempt
        self.MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
        # DELAY_BETWEEN_RETRIES: Initial delay in seconds (doubled after each retry)
        self.DELAY_BETWEEN_RETRIES: float = float(os.getenv("DELAY_BETWEEN_RETRIES", "1"))

        # History Configuration
        # MAX_HISTORY: Number of past generations kept, most recent first. Default: 10
        self.MAX_HISTORY: int = int(os.getenv("MAX_HISTORY", "10"))
        # HISTORY_DIR: Directory holding the persisted key-value files
        self.HISTORY_DIR: Path = Path(os.getenv("HISTORY_DIR", str(Path.home() / ".recetas"))).expanduser()
        # HISTORY_STORAGE_KEY: Storage key holding the JSON-encoded history list
        self.HISTORY_STORAGE_KEY: str = os.getenv("HISTORY_STORAGE_KEY", "recetas_history")

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If a numeric or range value is invalid.
        """
        if self.MAX_IMAGES < 1:
            raise ValueError(f"MAX_IMAGES must be at least 1, got: {self.MAX_IMAGES}")
        if self.MAX_IMAGE_SIZE_MB < 1:
            raise ValueError(f"MAX_IMAGE_SIZE_MB must be at least 1, got: {self.MAX_IMAGE_SIZE_MB}")
        if self.THINKING_BUDGET < 0:
            raise ValueError(f"THINKING_BUDGET must be 0 or greater, got: {self.THINKING_BUDGET}")
        if self.TEMPERATURE is not None and not (0.0 <= self.TEMPERATURE <= 2.0):
            raise ValueError(f"TEMPERATURE must be between 0.0 and 2.0, got: {self.TEMPERATURE}")
        if self.MAX_RETRIES < 0:
            raise ValueError(f"MAX_RETRIES must be 0 or greater, got: {self.MAX_RETRIES}")
        if self.DELAY_BETWEEN_RETRIES <= 0:
            raise ValueError(
                f"DELAY_BETWEEN_RETRIES must be greater than 0 seconds, got: {self.DELAY_BETWEEN_RETRIES}"
            )
        if self.MAX_HISTORY < 1:
            raise ValueError(f"MAX_HISTORY must be at least 1, got: {self.MAX_HISTORY}")
        if not self.HISTORY_STORAGE_KEY:
            raise ValueError("HISTORY_STORAGE_KEY must not be empty")


# Create module-level config instance and validate immediately
config = Config()
config.validate()
