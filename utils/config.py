"""
Configuration module for global settings and environment variable handling.

This module centralizes configuration settings and provides a consistent
interface for accessing environment variables and other configuration values.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from utils.logging import get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger("utils.config")


@dataclass
class DecoderConfig:
    """Recursion and concurrency limits for calldata decoding."""

    max_depth: int = 5
    max_nodes: int = 50
    max_workers: int = 8


class Config:
    """Global configuration handler."""

    # Default values that can be overridden by environment variables
    DEFAULT_TIMEOUT = 30  # seconds
    DEFAULT_RETRY_COUNT = 3
    DEFAULT_BACKOFF_FACTOR = 1.0
    DEFAULT_ABI_CACHE_TTL = 5 * 60  # seconds
    DEFAULT_EXPLORER_CACHE_TTL = 24 * 60 * 60
    DEFAULT_DIRECTORY_CACHE_TTL = 24 * 60 * 60
    DEFAULT_DIRECTORY_URL = "https://www.4byte.directory/api/v1/"

    @staticmethod
    def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
        """Get environment variable with fallback to default."""
        return os.getenv(key, default)

    @staticmethod
    def get_env_int(key: str, default: int) -> int:
        """Get environment variable as integer with fallback to default."""
        value = os.getenv(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid integer value for %s: %s. Using default %s", key, value, default)
            return default

    @staticmethod
    def get_env_float(key: str, default: float) -> float:
        """Get environment variable as float with fallback to default."""
        value = os.getenv(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning("Invalid float value for %s: %s. Using default %s", key, value, default)
            return default

    @staticmethod
    def get_env_bool(key: str, default: bool) -> bool:
        """Get environment variable as boolean with fallback to default."""
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("true", "yes", "1")

    @staticmethod
    def get_env_list(key: str) -> list[str]:
        """Get a comma-separated environment variable as a list of stripped, non-empty items."""
        value = os.getenv(key)
        if not value:
            return []
        return [item.strip() for item in value.split(",") if item.strip()]

    @staticmethod
    def get_decoder_config() -> DecoderConfig:
        """Get recursion limits for the calldata decoder."""
        return DecoderConfig(
            max_depth=Config.get_env_int("DECODER_MAX_DEPTH", 5),
            max_nodes=Config.get_env_int("DECODER_MAX_NODES", 50),
            max_workers=max(1, Config.get_env_int("DECODER_MAX_WORKERS", 8)),
        )

    @classmethod
    def get_request_timeout(cls) -> int:
        """Get HTTP request timeout in seconds."""
        return cls.get_env_int("REQUEST_TIMEOUT", cls.DEFAULT_TIMEOUT)

    @classmethod
    def get_retry_count(cls) -> int:
        """Get number of retry attempts for external calls."""
        return cls.get_env_int("RETRY_COUNT", cls.DEFAULT_RETRY_COUNT)

    @classmethod
    def get_backoff_factor(cls) -> float:
        """Get backoff factor for retries."""
        return cls.get_env_float("BACKOFF_FACTOR", cls.DEFAULT_BACKOFF_FACTOR)

    @classmethod
    def get_abi_cache_ttl(cls) -> float:
        """Get TTL in seconds for cached ABI resolutions."""
        return cls.get_env_float("ABI_CACHE_TTL_SECONDS", cls.DEFAULT_ABI_CACHE_TTL)

    @classmethod
    def get_explorer_cache_ttl(cls) -> float:
        """Get TTL in seconds for cached explorer contract metadata."""
        return cls.get_env_float("EXPLORER_CACHE_TTL_SECONDS", cls.DEFAULT_EXPLORER_CACHE_TTL)

    @classmethod
    def get_directory_cache_ttl(cls) -> float:
        """Get TTL in seconds for cached signature directory lookups."""
        return cls.get_env_float("DIRECTORY_CACHE_TTL_SECONDS", cls.DEFAULT_DIRECTORY_CACHE_TTL)

    @classmethod
    def get_directory_url(cls) -> str:
        """Get the signature directory API base URL (always ends with a slash)."""
        url = cls.get_env("FOURBYTE_DIRECTORY_URL") or cls.DEFAULT_DIRECTORY_URL
        return url if url.endswith("/") else url + "/"

    @classmethod
    def get_explorer_api_url(cls, network: str) -> Optional[str]:
        """Get an explorer API base URL override for a network, if one is set."""
        return cls.get_env(f"RSK_{network.upper()}_BLOCKSCOUT_URL")
