"""
Core data model for Idea Platform.

Defines the Idea aggregate and its sub-records:

    Idea
     ├── comments     (Comment, newest first)
     ├── evaluations  (Evaluation, one per evaluator)
     ├── likes        (user ids, set semantics)
     └── branches     (child idea ids; the child carries parent_id)

Dataclass attributes are snake_case. Documents (MongoDB) and JSON payloads
use the camelCase keys the web client expects (hashTags, createdBy, ...).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import re
import uuid


class Category(str, Enum):
    """Fixed set of idea categories."""
    TECHNOLOGY = "technology"
    BUSINESS = "business"
    EDUCATION = "education"
    HEALTH = "health"
    ENVIRONMENT = "environment"
    OTHER = "other"

    @classmethod
    def values(cls) -> List[str]:
        return [c.value for c in cls]


class Criterion(str, Enum):
    """Evaluation criteria. Every score is an integer in [1, 5]."""
    FEASIBILITY = "feasibility"
    INNOVATION = "innovation"
    USEFULNESS = "usefulness"
    MARKETABILITY = "marketability"
    COST_EFFICIENCY = "cost_efficiency"
    SOCIAL_IMPACT = "social_impact"

    @classmethod
    def values(cls) -> List[str]:
        return [c.value for c in cls]


MIN_SCORE = 1
MAX_SCORE = 5

_HASHTAG_PATTERN = re.compile(r"#(\w+)")


def new_id() -> str:
    """Generate a new record id (32 hex chars)."""
    return uuid.uuid4().hex


def normalize_hashtags(tags) -> List[str]:
    """
    Clean a list of hashtags.

    Trims whitespace, strips one leading '#', drops empties and removes
    duplicates while keeping the first occurrence's position.
    """
    cleaned: List[str] = []
    for tag in tags or []:
        if not isinstance(tag, str):
            continue
        tag = tag.strip()
        if tag.startswith("#"):
            tag = tag[1:].strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def extract_hashtags(content: str) -> List[str]:
    """
    Pull #word hashtags out of free text.

    Example:
        >>> extract_hashtags("Solar kiosks #energy #africa #energy")
        ['energy', 'africa']
    """
    return normalize_hashtags(_HASHTAG_PATTERN.findall(content or ""))


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# Sub-records
# =============================================================================

@dataclass
class Comment:
    """A comment on an idea, with optional feedback tags."""
    content: str
    created_by: str
    user_name: str
    user_image: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=datetime.now)

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "createdBy": self.created_by,
            "userName": self.user_name,
            "userImage": self.user_image,
            "tags": list(self.tags),
            "createdAt": self.created_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_document()
        data["createdAt"] = _iso(self.created_at)
        return data

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Comment":
        return cls(
            id=doc.get("id") or new_id(),
            content=doc.get("content", ""),
            created_by=doc.get("createdBy", ""),
            user_name=doc.get("userName", ""),
            user_image=doc.get("userImage"),
            tags=list(doc.get("tags") or []),
            created_at=_parse_datetime(doc.get("createdAt")) or datetime.now(),
        )


@dataclass
class Evaluation:
    """
    One user's multi-criterion rating of an idea.

    Attributes:
        evaluator: Id of the user who submitted the evaluation.
        user_name: Evaluator's display name at submission time.
        scores: Criterion -> integer score in [1, 5]. Criteria may be omitted.
        feedback: Optional free-text feedback.
        created_at: First submission time.
        updated_at: Last overwrite time (None until overwritten).
    """
    evaluator: str
    user_name: str
    scores: Dict[Criterion, int] = field(default_factory=dict)
    feedback: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: Optional[datetime] = None

    def score_values(self) -> List[int]:
        """Scores that count towards the average (unset criteria are skipped)."""
        return [value for value in self.scores.values() if value]

    def to_document(self) -> Dict[str, Any]:
        return {
            "evaluator": self.evaluator,
            "userName": self.user_name,
            "scores": {criterion.value: value for criterion, value in self.scores.items()},
            "feedback": self.feedback,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_document()
        data["createdAt"] = _iso(self.created_at)
        data["updatedAt"] = _iso(self.updated_at)
        return data

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Evaluation":
        scores = {
            Criterion(key): value
            for key, value in (doc.get("scores") or {}).items()
            if key in Criterion.values()
        }
        return cls(
            evaluator=doc.get("evaluator", ""),
            user_name=doc.get("userName", ""),
            scores=scores,
            feedback=doc.get("feedback"),
            created_at=_parse_datetime(doc.get("createdAt")) or datetime.now(),
            updated_at=_parse_datetime(doc.get("updatedAt")),
        )


# =============================================================================
# Idea
# =============================================================================

@dataclass
class Idea:
    """
    A posted idea.

    This is the aggregate every write operates on: likes, comments,
    evaluations and lineage are stored inside the same record so each
    mutation is a single-document write.

    Attributes:
        title: Short title.
        content: Free-text body.
        created_by: Author's user id.
        user_name: Author's display name (denormalized for listing).
        category: One of Category.
        hash_tags: Hashtags in display order.
        user_image: Author's image URL (denormalized).
        likes: User ids who liked the idea; never contains duplicates.
        comments: Comments, newest first.
        evaluations: At most one Evaluation per evaluator.
        average_rating: Flattened mean of all evaluation scores (0 if none).
        parent_id: Id of the idea this one was branched from.
        branches: Ids of ideas branched from this one.
        changes: What a branch changed relative to its parent.
    """

    # Required fields
    title: str
    content: str
    created_by: str
    user_name: str

    # Optional fields with defaults
    id: str = field(default_factory=new_id)
    category: str = Category.OTHER.value
    hash_tags: List[str] = field(default_factory=list)
    user_image: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    likes: List[str] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)
    evaluations: List[Evaluation] = field(default_factory=list)
    average_rating: float = 0.0
    parent_id: Optional[str] = None
    branches: List[str] = field(default_factory=list)
    changes: Optional[str] = None

    def __post_init__(self) -> None:
        """Normalize and validate fields after initialization."""
        if isinstance(self.category, Category):
            self.category = self.category.value
        self.hash_tags = normalize_hashtags(self.hash_tags)
        self.validate()

    def validate(self) -> None:
        """
        Validate that required fields are present and valid.

        Raises:
            ValueError: If validation fails.
        """
        errors = []

        if not self.title or not self.title.strip():
            errors.append("title is required and cannot be empty")

        if not self.content or not self.content.strip():
            errors.append("content is required and cannot be empty")

        if not self.created_by:
            errors.append("created_by is required")

        if self.category not in Category.values():
            errors.append(
                f"category must be one of {', '.join(Category.values())}, got {self.category!r}"
            )

        if self.parent_id is not None and self.parent_id == self.id:
            errors.append("an idea cannot be its own parent")

        if errors:
            raise ValueError(f"Idea validation failed: {'; '.join(errors)}")

    @property
    def likes_count(self) -> int:
        return len(self.likes)

    @property
    def comments_count(self) -> int:
        return len(self.comments)

    def find_evaluation(self, evaluator: str) -> Optional[Evaluation]:
        """Return the evaluation submitted by `evaluator`, if any."""
        for evaluation in self.evaluations:
            if evaluation.evaluator == evaluator:
                return evaluation
        return None

    def to_document(self) -> Dict[str, Any]:
        """
        Convert to a storage document.

        Datetimes stay as datetime objects; the id is stored under "_id".
        Counter fields are written so the store can sort on them.
        """
        return {
            "_id": self.id,
            "title": self.title,
            "content": self.content,
            "hashTags": list(self.hash_tags),
            "category": self.category,
            "createdBy": self.created_by,
            "userName": self.user_name,
            "userImage": self.user_image,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "likes": list(self.likes),
            "likesCount": self.likes_count,
            "comments": [c.to_document() for c in self.comments],
            "commentsCount": self.comments_count,
            "evaluations": [e.to_document() for e in self.evaluations],
            "averageRating": self.average_rating,
            "parentId": self.parent_id,
            "branches": list(self.branches),
            "changes": self.changes,
        }

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to a JSON-serializable dictionary for API responses.

        Returns:
            Dictionary with "id" instead of "_id" and ISO-format datetimes.
        """
        data = self.to_document()
        data["id"] = data.pop("_id")
        data["createdAt"] = _iso(self.created_at)
        data["updatedAt"] = _iso(self.updated_at)
        data["comments"] = [c.to_dict() for c in self.comments]
        data["evaluations"] = [e.to_dict() for e in self.evaluations]
        return data

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Idea":
        """
        Create an Idea from a storage document or API dictionary.

        Accepts either "_id" or "id" and either datetime objects or ISO strings.
        """
        return cls(
            id=str(doc.get("_id") or doc.get("id") or new_id()),
            title=doc.get("title", ""),
            content=doc.get("content", ""),
            hash_tags=list(doc.get("hashTags") or []),
            category=doc.get("category") or Category.OTHER.value,
            created_by=doc.get("createdBy", ""),
            user_name=doc.get("userName", ""),
            user_image=doc.get("userImage"),
            created_at=_parse_datetime(doc.get("createdAt")) or datetime.now(),
            updated_at=_parse_datetime(doc.get("updatedAt")) or datetime.now(),
            likes=list(doc.get("likes") or []),
            comments=[Comment.from_document(c) for c in doc.get("comments") or []],
            evaluations=[Evaluation.from_document(e) for e in doc.get("evaluations") or []],
            average_rating=float(doc.get("averageRating") or 0.0),
            parent_id=doc.get("parentId"),
            branches=list(doc.get("branches") or []),
            changes=doc.get("changes"),
        )

    def __str__(self) -> str:
        return f"[{self.category}] {self.title} (rating: {self.average_rating:.2f})"

    def __repr__(self) -> str:
        return (
            f"Idea(id={self.id!r}, title={self.title!r}, "
            f"category={self.category!r}, average_rating={self.average_rating})"
        )
