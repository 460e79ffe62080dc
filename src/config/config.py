"""
Configuration module for Idea Platform.

Loads environment variables from .env file and exposes them as typed configuration values.
Uses python-dotenv for loading and provides safe defaults where appropriate.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from project root
# The .env file should be in the root directory (parent of src/)
_project_root = Path(__file__).parent.parent.parent
_env_path = _project_root / ".env"
load_dotenv(_env_path)


# =============================================================================
# Application Environment
# =============================================================================

# Application environment: "development", "staging", or "production"
# Default: "development" for safe local testing
APP_ENV: str = os.getenv("APP_ENV", "development")

# Enable debug mode for verbose logging (only in development)
DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

# Address the API server binds to
HOST: str = os.getenv("HOST", "127.0.0.1")
PORT: int = int(os.getenv("PORT", "3000"))


# =============================================================================
# Authentication
# =============================================================================

# Placeholder used when SECRET_KEY is not set; rejected in production
DEFAULT_SECRET_KEY = "dev-secret-change-me"

# Key used to sign bearer tokens
SECRET_KEY: str = os.getenv("SECRET_KEY", DEFAULT_SECRET_KEY)

# Bearer tokens older than this are rejected
TOKEN_MAX_AGE_DAYS: int = int(os.getenv("TOKEN_MAX_AGE_DAYS", "7"))


# =============================================================================
# Storage Configuration
# =============================================================================

# Storage backend: "memory" (in-process, for development) or "mongo"
STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "memory").lower()

# MongoDB connection string and database name
MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "idea_platform")

# Wrap multi-document writes (branching) in a transaction.
# Requires a replica set or sharded cluster.
MONGODB_TRANSACTIONS: bool = os.getenv("MONGODB_TRANSACTIONS", "false").lower() == "true"


# =============================================================================
# Listing & Search Configuration
# =============================================================================

# Page size for GET /api/ideas when no limit is given
DEFAULT_PAGE_LIMIT: int = int(os.getenv("DEFAULT_PAGE_LIMIT", "10"))

# Page size for GET /api/ideas/search when no limit is given
DEFAULT_SEARCH_LIMIT: int = int(os.getenv("DEFAULT_SEARCH_LIMIT", "20"))

# Hard cap on any requested page size
MAX_PAGE_LIMIT: int = int(os.getenv("MAX_PAGE_LIMIT", "100"))

# Number of tags returned by GET /api/tags
TOP_TAGS_LIMIT: int = int(os.getenv("TOP_TAGS_LIMIT", "100"))


# =============================================================================
# Helper Functions
# =============================================================================

def is_production() -> bool:
    """Check if running in production environment."""
    return APP_ENV == "production"


def is_development() -> bool:
    """Check if running in development environment."""
    return APP_ENV == "development"


def validate_config() -> list[str]:
    """
    Validate that required configuration is present for production.

    Returns:
        List of missing or invalid configuration keys (empty if all valid).
    """
    errors = []

    if is_production():
        if SECRET_KEY == DEFAULT_SECRET_KEY:
            errors.append("SECRET_KEY must be set in production")
        if STORAGE_BACKEND != "mongo":
            errors.append("STORAGE_BACKEND must be 'mongo' in production")

    if STORAGE_BACKEND not in ("memory", "mongo"):
        errors.append(f"STORAGE_BACKEND must be 'memory' or 'mongo', got {STORAGE_BACKEND!r}")

    if TOKEN_MAX_AGE_DAYS < 1:
        errors.append("TOKEN_MAX_AGE_DAYS must be at least 1")

    if DEFAULT_PAGE_LIMIT < 1 or DEFAULT_SEARCH_LIMIT < 1:
        errors.append("DEFAULT_PAGE_LIMIT and DEFAULT_SEARCH_LIMIT must be at least 1")

    if MAX_PAGE_LIMIT < max(DEFAULT_PAGE_LIMIT, DEFAULT_SEARCH_LIMIT):
        errors.append("MAX_PAGE_LIMIT cannot be smaller than the default page sizes")

    if TOP_TAGS_LIMIT < 1:
        errors.append("TOP_TAGS_LIMIT must be at least 1")

    return errors


def print_config_summary() -> None:
    """Print a summary of current configuration (safe for logs, no secrets)."""
    secret_state = "(default)" if SECRET_KEY == DEFAULT_SECRET_KEY else "***"
    print(f"  APP_ENV: {APP_ENV}")
    print(f"  DEBUG: {DEBUG}")
    print(f"  HOST: {HOST}")
    print(f"  PORT: {PORT}")
    print(f"  SECRET_KEY: {secret_state}")
    print(f"  TOKEN_MAX_AGE_DAYS: {TOKEN_MAX_AGE_DAYS}")
    print(f"  STORAGE_BACKEND: {STORAGE_BACKEND}")
    print(f"  MONGODB_URI: {'***' if STORAGE_BACKEND == 'mongo' else '(unused)'}")
    print(f"  MONGODB_DATABASE: {MONGODB_DATABASE}")
    print(f"  MONGODB_TRANSACTIONS: {MONGODB_TRANSACTIONS}")
    print(f"  DEFAULT_PAGE_LIMIT: {DEFAULT_PAGE_LIMIT}")
    print(f"  DEFAULT_SEARCH_LIMIT: {DEFAULT_SEARCH_LIMIT}")
    print(f"  MAX_PAGE_LIMIT: {MAX_PAGE_LIMIT}")
    print(f"  TOP_TAGS_LIMIT: {TOP_TAGS_LIMIT}")
