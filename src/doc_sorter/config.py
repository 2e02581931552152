"""
Configuration module for doc-sorter.

This module centralizes the loading and validation of all configuration
parameters from environment variables. It provides a single `Settings`
class that acts as a container for all configurable values, ensuring
that they are defined in one place and can be easily imported and used
throughout the application.
"""

from __future__ import annotations

import os
from typing import Literal

import openai
import pytesseract
from PIL import Image


def _parse_models(value: str | None) -> list[str]:
    if not value:
        return []
    return [model.strip() for model in value.split(",") if model.strip()]


class Settings:
    """
    A container for all configuration settings, loaded from environment variables.

    This class centralizes configuration, providing default values for optional
    settings and raising errors for missing required settings.
    """

    # --- Logging ---
    LOG_LEVEL: str
    LOG_FORMAT: Literal["console", "json"]

    # --- OCR Engine ---
    OCR_ENGINE: Literal["tesseract", "openai"]
    OCR_LANGUAGES: str
    TESSERACT_CMD: str | None
    OCR_TIMEOUT: int
    OCR_MAX_SIDE: int

    # --- Vision LLM (OCR_ENGINE=openai) ---
    LLM_PROVIDER: Literal["openai", "ollama"]
    OLLAMA_BASE_URL: str | None
    OPENAI_API_KEY: str | None
    AI_MODELS: list[str]
    MAX_RETRIES: int
    MAX_RETRY_BACKOFF_SECONDS: int
    REQUEST_TIMEOUT: int

    # --- Classification ---
    CONFIDENCE_THRESHOLD: float
    TAXONOMY_FILE: str | None

    # --- Export ---
    ARCHIVE_NAME: str

    def __init__(self):
        """
        Loads settings from environment variables and performs validation.
        """
        # --- Logging ---
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT = os.getenv("LOG_FORMAT", "console").lower()
        if self.LOG_FORMAT not in ("console", "json"):
            raise ValueError("LOG_FORMAT must be 'console' or 'json'")

        # --- OCR Engine ---
        self.OCR_ENGINE = os.getenv("OCR_ENGINE", "tesseract").lower()
        if self.OCR_ENGINE not in ("tesseract", "openai"):
            raise ValueError("OCR_ENGINE must be 'tesseract' or 'openai'")
        self.OCR_LANGUAGES = os.getenv("OCR_LANGUAGES", "eng+hin").strip()
        if not self.OCR_LANGUAGES:
            raise ValueError("OCR_LANGUAGES must not be empty")
        self.TESSERACT_CMD = os.getenv("TESSERACT_CMD") or None
        self.OCR_TIMEOUT = max(0, int(os.getenv("OCR_TIMEOUT", 120)))
        self.OCR_MAX_SIDE = int(os.getenv("OCR_MAX_SIDE", 1600))

        # --- Vision LLM ---
        self.LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai").lower()
        if self.LLM_PROVIDER not in ("openai", "ollama"):
            raise ValueError("LLM_PROVIDER must be 'openai' or 'ollama'")

        if self.LLM_PROVIDER == "ollama":
            self.OLLAMA_BASE_URL = os.getenv(
                "OLLAMA_BASE_URL", "http://localhost:11434/v1/"
            )
            self.OPENAI_API_KEY = None  # Not used for Ollama
            default_models = "gemma3:27b,gemma3:12b"
        else:  # openai
            self.OLLAMA_BASE_URL = None
            if self.OCR_ENGINE == "openai":
                self.OPENAI_API_KEY = self._get_required_env("OPENAI_API_KEY")
            else:
                self.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
            default_models = "gpt-5-mini,o4-mini"

        self.AI_MODELS = _parse_models(os.getenv("AI_MODELS", default_models))
        if self.OCR_ENGINE == "openai" and not self.AI_MODELS:
            raise ValueError("AI_MODELS must list at least one model")

        self.MAX_RETRIES = int(os.getenv("MAX_RETRIES", 5))
        if self.MAX_RETRIES < 1:
            raise ValueError("MAX_RETRIES must be >= 1")
        self.MAX_RETRY_BACKOFF_SECONDS = int(os.getenv("MAX_RETRY_BACKOFF_SECONDS", 30))
        self.REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", 180))

        # --- Classification ---
        self.CONFIDENCE_THRESHOLD = float(os.getenv("CONFIDENCE_THRESHOLD", 0.1))
        if not 0.0 <= self.CONFIDENCE_THRESHOLD <= 1.0:
            raise ValueError("CONFIDENCE_THRESHOLD must be between 0 and 1")
        self.TAXONOMY_FILE = os.getenv("TAXONOMY_FILE") or None

        # --- Export ---
        self.ARCHIVE_NAME = os.getenv("ARCHIVE_NAME", "sorted_documents.zip")

    def _get_required_env(self, var_name: str) -> str:
        """
        Gets a required environment variable, raising an error if it's not set.
        """
        value = os.getenv(var_name)
        if value is None:
            raise ValueError(f"Required environment variable '{var_name}' is not set.")
        return value


def setup_libraries(settings: Settings) -> None:
    """
    Configures third-party libraries based on the application settings.
    """
    # Disable Pillow's safety check that prevents huge images
    Image.MAX_IMAGE_PIXELS = None

    if settings.TESSERACT_CMD:
        pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD

    if settings.OCR_ENGINE != "openai":
        return
    if settings.LLM_PROVIDER == "ollama":
        openai.base_url = settings.OLLAMA_BASE_URL
        openai.api_key = "dummy"
    else:
        openai.api_key = settings.OPENAI_API_KEY
