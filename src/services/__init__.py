"""
Services module.

Idea and user operations, authentication and the error taxonomy the web
layer maps onto HTTP status codes.
"""

from src.services.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from src.services.auth import TokenSigner, hash_password, parse_bearer, verify_password
from src.services.idea_service import EvaluationOutcome, IdeaService
from src.services.user_service import UserService

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ServiceError",
    "ValidationError",
    "TokenSigner",
    "hash_password",
    "parse_bearer",
    "verify_password",
    "EvaluationOutcome",
    "IdeaService",
    "UserService",
]
