"""
Data models module.

Defines data structures for ideas, comments, evaluations and users.
"""

from src.models.idea import (
    Category,
    Comment,
    Criterion,
    Evaluation,
    Idea,
    MAX_SCORE,
    MIN_SCORE,
    extract_hashtags,
    new_id,
    normalize_hashtags,
)
from src.models.user import Role, User, is_valid_email, normalize_email

__all__ = [
    "Category",
    "Comment",
    "Criterion",
    "Evaluation",
    "Idea",
    "MAX_SCORE",
    "MIN_SCORE",
    "extract_hashtags",
    "new_id",
    "normalize_hashtags",
    "Role",
    "User",
    "is_valid_email",
    "normalize_email",
]
