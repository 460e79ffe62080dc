"""
Evaluation module.

Validates multi-criterion scores and keeps each idea's average rating in step
with its evaluations.
"""

from src.evaluation.aggregator import (
    compute_average_rating,
    upsert_evaluation,
    validate_scores,
)

__all__ = [
    "compute_average_rating",
    "upsert_evaluation",
    "validate_scores",
]
