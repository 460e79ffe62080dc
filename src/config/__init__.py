"""
Configuration module.

Handles environment variables, secrets, and application settings.
"""

from src.config.config import (
    APP_ENV,
    DEBUG,
    HOST,
    PORT,
    DEFAULT_SECRET_KEY,
    SECRET_KEY,
    TOKEN_MAX_AGE_DAYS,
    STORAGE_BACKEND,
    MONGODB_URI,
    MONGODB_DATABASE,
    MONGODB_TRANSACTIONS,
    DEFAULT_PAGE_LIMIT,
    DEFAULT_SEARCH_LIMIT,
    MAX_PAGE_LIMIT,
    TOP_TAGS_LIMIT,
    is_production,
    is_development,
    validate_config,
    print_config_summary,
)

__all__ = [
    "APP_ENV",
    "DEBUG",
    "HOST",
    "PORT",
    "DEFAULT_SECRET_KEY",
    "SECRET_KEY",
    "TOKEN_MAX_AGE_DAYS",
    "STORAGE_BACKEND",
    "MONGODB_URI",
    "MONGODB_DATABASE",
    "MONGODB_TRANSACTIONS",
    "DEFAULT_PAGE_LIMIT",
    "DEFAULT_SEARCH_LIMIT",
    "MAX_PAGE_LIMIT",
    "TOP_TAGS_LIMIT",
    "is_production",
    "is_development",
    "validate_config",
    "print_config_summary",
]
