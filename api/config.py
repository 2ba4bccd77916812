"""
API configuration settings.
"""

from pathlib import Path
from typing import Set

from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_API_KEY = "dev-api-key"


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Amana Bookstore API"
    api_version: str = "1.0.0"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False

    # API Key Settings
    api_keys: str = DEFAULT_API_KEY  # Comma-separated list of valid API keys

    # Storage Settings
    data_dir: str = "data"
    books_file: str = "books.json"
    reviews_file: str = "reviews.json"

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"
    log_dir: str = "logging"
    access_log_file: str = "log.txt"

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    def get_api_keys(self) -> Set[str]:
        """
        Parse the accepted API keys.

        An unset or empty API_KEYS falls back to the development key; a value
        made only of separators yields no keys at all.
        """
        raw = self.api_keys or DEFAULT_API_KEY
        return {key.strip() for key in raw.split(",") if key.strip()}

    def get_books_path(self) -> Path:
        """Get the books collection file as Path object."""
        return Path(self.data_dir) / self.books_file

    def get_reviews_path(self) -> Path:
        """Get the reviews collection file as Path object."""
        return Path(self.data_dir) / self.reviews_file

    def get_access_log_path(self) -> Path:
        """Get access log file path as Path object."""
        return Path(self.log_dir) / self.access_log_file


# Global config instance
config = APIConfig()
