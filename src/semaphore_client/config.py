"""
Configuration module for the Classification Server client.

This module centralizes the loading and validation of configuration
parameters from environment variables. It provides a single `Settings`
class that acts as a container for all configurable values, used by the
command-line entry point and by `ClassificationClient.from_settings`.
"""

import os
from typing import Literal
from urllib.parse import urlparse

# Timeouts are converted to milliseconds and must fit a signed 32-bit integer.
MAX_TIMEOUT_SECONDS = (2**31 - 1) // 1000
DEFAULT_TIMEOUT_SECONDS = 120


def validate_timeout(timeout: int) -> int:
    """
    Return ``timeout`` if it is a usable number of seconds, else raise ValueError.
    """
    if timeout <= 0:
        raise ValueError("Web service timeout must be greater than 0")
    if timeout > MAX_TIMEOUT_SECONDS:
        raise ValueError(
            f"Web service timeout must be less than {MAX_TIMEOUT_SECONDS + 1}"
        )
    return timeout


def is_absolute_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Settings:
    """
    A container for all configuration settings, loaded from environment variables.

    Optional settings fall back to defaults; missing required settings and
    invalid values raise ``ValueError``.
    """

    # --- Classification Server ---
    CLASSIFICATION_SERVER_URL: str
    CLASSIFICATION_API_KEY: str
    REQUEST_TIMEOUT: int

    # --- Caller-side retries ---
    MAX_RETRIES: int
    MAX_RETRY_BACKOFF_SECONDS: int

    # --- Logging ---
    LOG_LEVEL: str
    LOG_FORMAT: Literal["console", "json"]

    def __init__(self):
        """
        Loads settings from environment variables and performs validation.
        """
        # --- Classification Server ---
        self.CLASSIFICATION_SERVER_URL = self._get_required_env(
            "CLASSIFICATION_SERVER_URL"
        )
        if not is_absolute_url(self.CLASSIFICATION_SERVER_URL):
            raise ValueError("CLASSIFICATION_SERVER_URL must be an absolute URL")
        self.CLASSIFICATION_API_KEY = os.getenv("CLASSIFICATION_API_KEY", "")
        self.REQUEST_TIMEOUT = validate_timeout(
            self._get_int_env("REQUEST_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
        )

        # --- Caller-side retries ---
        self.MAX_RETRIES = self._get_int_env("MAX_RETRIES", 3)
        if self.MAX_RETRIES < 1:
            raise ValueError("MAX_RETRIES must be >= 1")
        self.MAX_RETRY_BACKOFF_SECONDS = self._get_int_env(
            "MAX_RETRY_BACKOFF_SECONDS", 30
        )

        # --- Logging ---
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT = os.getenv("LOG_FORMAT", "console").lower()
        if self.LOG_FORMAT not in ("console", "json"):
            raise ValueError("LOG_FORMAT must be 'console' or 'json'")

    def _get_required_env(self, var_name: str) -> str:
        """
        Gets a required environment variable, raising an error if it's not set.
        """
        value = os.getenv(var_name)
        if value is None:
            raise ValueError(f"Required environment variable '{var_name}' is not set.")
        return value

    def _get_int_env(self, var_name: str, default: int) -> int:
        value = os.getenv(var_name)
        if value is None or not value.strip():
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"{var_name} must be an integer, got {value!r}") from None
