"""
Evaluation aggregation for Idea Platform.

Provides pure functions to:
1. Validate a submitted score mapping
2. Compute an idea's average rating from its evaluations
3. Insert or overwrite one evaluator's evaluation on an idea

The average is a flattened mean: every criterion score of every evaluation
counts once, so an evaluation that scores six criteria weighs six times as
much as one that scores a single criterion.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional

from src.models.idea import Criterion, Evaluation, Idea, MAX_SCORE, MIN_SCORE


# =============================================================================
# Validation
# =============================================================================

def validate_scores(raw: Optional[Mapping[str, Any]]) -> Dict[Criterion, int]:
    """
    Validate a criterion -> score mapping from a request.

    Rules:
    - The mapping must be present and contain at least one entry
    - Every key must name a known criterion
    - Every value must be an integer in [MIN_SCORE, MAX_SCORE]
    - Criteria may be omitted

    Args:
        raw: Mapping of criterion name (e.g. "feasibility") to score.

    Returns:
        Dict keyed by Criterion.

    Raises:
        ValueError: Describing every invalid entry.
    """
    if not raw or not isinstance(raw, Mapping):
        raise ValueError(f"scores are required ({MIN_SCORE}-{MAX_SCORE} per criterion)")

    errors = []
    scores: Dict[Criterion, int] = {}

    for key, value in raw.items():
        if key not in Criterion.values():
            errors.append(f"unknown criterion {key!r}")
            continue

        # bool is an int subclass; a JSON true is not a score
        if (
            isinstance(value, bool)
            or not isinstance(value, (int, float))
            or (isinstance(value, float) and not value.is_integer())
        ):
            errors.append(f"{key} must be an integer, got {value!r}")
            continue

        value = int(value)
        if not (MIN_SCORE <= value <= MAX_SCORE):
            errors.append(f"{key} must be between {MIN_SCORE} and {MAX_SCORE}, got {value}")
            continue

        scores[Criterion(key)] = value

    if errors:
        raise ValueError(f"Invalid scores: {'; '.join(errors)}")

    return scores


# =============================================================================
# Aggregation
# =============================================================================

def compute_average_rating(evaluations: Iterable[Evaluation]) -> float:
    """
    Compute the flattened mean of all criterion scores.

    Formula:
        sum(every score of every evaluation) / count(every score)

    Returns 0.0 when there are no evaluations or no scored criteria.

    Example:
        >>> a = Evaluation("u1", "A", {Criterion.FEASIBILITY: 5, Criterion.INNOVATION: 3})
        >>> b = Evaluation("u2", "B", {Criterion.FEASIBILITY: 1})
        >>> compute_average_rating([a, b])
        3.0
    """
    total = 0
    count = 0

    for evaluation in evaluations:
        for value in evaluation.score_values():
            total += value
            count += 1

    return total / count if count > 0 else 0.0


def upsert_evaluation(
    idea: Idea,
    evaluator: str,
    user_name: str,
    scores: Dict[Criterion, int],
    feedback: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Evaluation:
    """
    Insert or overwrite `evaluator`'s evaluation on `idea`, then recompute
    the idea's average rating.

    An existing evaluation keeps its list position and created_at; its
    scores, feedback and updated_at are replaced. Otherwise a new evaluation
    is appended.

    Mutates `idea` in place. Scores are expected to be validated already.

    Returns:
        The evaluation now stored for `evaluator`.
    """
    if now is None:
        now = datetime.now()

    evaluation = idea.find_evaluation(evaluator)

    if evaluation is not None:
        evaluation.scores = dict(scores)
        evaluation.feedback = feedback
        evaluation.updated_at = now
    else:
        evaluation = Evaluation(
            evaluator=evaluator,
            user_name=user_name,
            scores=dict(scores),
            feedback=feedback,
            created_at=now,
        )
        idea.evaluations.append(evaluation)

    idea.average_rating = compute_average_rating(idea.evaluations)
    idea.updated_at = now

    return evaluation
