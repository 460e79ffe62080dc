"""
Idea service - the operations behind every /api/ideas endpoint.

Responsibilities:
1. Validate request payloads and turn them into model objects
2. Enforce authorization (author-only update, author-or-admin delete)
3. Delegate each mutation to a single atomic Storage call
4. Translate storage/model failures into the service error taxonomy

Storage does the persistence; this module never touches a database driver.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from src.config import (
    DEBUG,
    DEFAULT_PAGE_LIMIT,
    DEFAULT_SEARCH_LIMIT,
    MAX_PAGE_LIMIT,
    TOP_TAGS_LIMIT,
)
from src.evaluation.aggregator import validate_scores
from src.models.idea import (
    Category,
    Comment,
    Evaluation,
    Idea,
    extract_hashtags,
    normalize_hashtags,
)
from src.models.user import User
from src.query.builder import QuerySpec, build_list_query, build_search_query
from src.storage.base import LikeResult, RecordNotFoundError, RepairResult, Storage
from src.services.errors import AuthorizationError, NotFoundError, ValidationError


IDEA_NOT_FOUND = "Idea not found"


@dataclass
class EvaluationOutcome:
    """
    Result of submitting an evaluation.

    Attributes:
        average_rating: Idea's average rating after the write.
        evaluations_count: Number of evaluations on the idea.
        user_evaluation: The caller's stored evaluation.
    """
    average_rating: float
    evaluations_count: int
    user_evaluation: Evaluation


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def _parse_hashtags(value: Any, field_name: str = "hashTags") -> List[str]:
    """Accept a list of tags or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return normalize_hashtags(value.split(","))
    if isinstance(value, (list, tuple)):
        return normalize_hashtags(value)
    raise ValidationError(f"{field_name} must be a list of strings")


def _parse_category(value: Any, default: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    category = str(value).strip().lower()
    if category not in Category.values():
        raise ValidationError(
            f"category must be one of {', '.join(Category.values())}"
        )
    return category


class IdeaService:
    """
    Idea operations on top of a Storage backend.

    Args:
        storage: Backend to read from and write to.
        default_page_limit: Page size for listing when none is requested.
        default_search_limit: Page size for search when none is requested.
        max_page_limit: Cap on requested page sizes.
        top_tags_limit: Number of tags returned by tags().
    """

    def __init__(
        self,
        storage: Storage,
        default_page_limit: int = DEFAULT_PAGE_LIMIT,
        default_search_limit: int = DEFAULT_SEARCH_LIMIT,
        max_page_limit: int = MAX_PAGE_LIMIT,
        top_tags_limit: int = TOP_TAGS_LIMIT,
    ):
        self.storage = storage
        self.default_page_limit = default_page_limit
        self.default_search_limit = default_search_limit
        self.max_page_limit = max_page_limit
        self.top_tags_limit = top_tags_limit

    def _log(self, message: str) -> None:
        if DEBUG:
            print(f"[ideas] {message}")

    # =========================================================================
    # Reads
    # =========================================================================

    def get_idea(self, idea_id: str) -> Idea:
        """
        Raises:
            NotFoundError: If no idea has this id.
        """
        idea = self.storage.get_idea(idea_id)
        if idea is None:
            raise NotFoundError(IDEA_NOT_FOUND)
        return idea

    def get_idea_detail(self, idea_id: str) -> Dict[str, Any]:
        """
        Idea as returned by GET /api/ideas/:id.

        Adds `author` ({id, name, image}, from the live user record when it
        still exists) and replaces `branches` ids with the child ideas.
        """
        idea = self.get_idea(idea_id)
        data = idea.to_dict()

        author = self.storage.get_user(idea.created_by)
        data["author"] = {
            "id": idea.created_by,
            "name": author.name if author else idea.user_name,
            "image": author.image if author else idea.user_image,
        }
        data["branches"] = [child.to_dict() for child in self.storage.get_ideas_by_ids(idea.branches)]
        return data

    def _run_query(self, spec: QuerySpec) -> Tuple[List[Idea], Dict[str, int]]:
        ideas = self.storage.find_ideas(spec)
        total = self.storage.count_ideas(spec.filter)
        return ideas, spec.pagination(total)

    def list_ideas(self, params: Mapping[str, Any]) -> Tuple[List[Idea], Dict[str, int]]:
        """
        One page of ideas for GET /api/ideas.

        Returns:
            (ideas, pagination) where pagination = {page, limit, total, pages}.
        """
        try:
            spec = build_list_query(params, self.default_page_limit, self.max_page_limit)
        except ValueError as e:
            raise ValidationError(str(e))
        return self._run_query(spec)

    def search_ideas(self, params: Mapping[str, Any]) -> Tuple[List[Idea], Dict[str, int]]:
        """
        One page of search results for GET /api/ideas/search.

        Raises:
            ValidationError: If no search parameter is given or one is malformed.
        """
        try:
            spec = build_search_query(params, self.default_search_limit, self.max_page_limit)
        except ValueError as e:
            raise ValidationError(str(e))
        return self._run_query(spec)

    def ideas_by_user(self, user_id: str, params: Mapping[str, Any]) -> Tuple[List[Idea], Dict[str, int]]:
        """A user's own ideas, newest first."""
        try:
            spec = build_list_query(params, self.default_page_limit, self.max_page_limit)
        except ValueError as e:
            raise ValidationError(str(e))
        spec.filter = {"createdBy": user_id}
        return self._run_query(spec)

    def liked_ideas(self, user: User, params: Mapping[str, Any]) -> Tuple[List[Idea], Dict[str, int]]:
        """Ideas the user currently likes."""
        try:
            spec = build_list_query(params, self.default_page_limit, self.max_page_limit)
        except ValueError as e:
            raise ValidationError(str(e))
        spec.filter = {"likes": user.id}
        return self._run_query(spec)

    def categories(self) -> List[str]:
        return self.storage.distinct_categories()

    def tags(self) -> List[Dict[str, Any]]:
        return self.storage.top_tags(self.top_tags_limit)

    # =========================================================================
    # Idea lifecycle
    # =========================================================================

    def create_idea(self, author: User, payload: Mapping[str, Any]) -> Idea:
        """
        Create an idea owned by `author`.

        When no hashtags are given they are extracted from #words in the content.

        Raises:
            ValidationError: On missing title/content or an unknown category.
        """
        title = _text(payload, "title")
        content = _text(payload, "content")
        if not title or not content:
            raise ValidationError("Title and content are required")

        hash_tags = _parse_hashtags(payload.get("hashTags"))
        if not hash_tags:
            hash_tags = extract_hashtags(content)

        try:
            idea = Idea(
                title=title,
                content=content,
                hash_tags=hash_tags,
                category=_parse_category(payload.get("category"), Category.OTHER.value),
                created_by=author.id,
                user_name=author.name,
                user_image=author.image,
            )
        except ValueError as e:
            raise ValidationError(str(e))

        self.storage.insert_idea(idea)
        self._log(f"Created idea {idea.id} by {author.id}")
        return idea

    def update_idea(self, user: User, idea_id: str, payload: Mapping[str, Any]) -> Idea:
        """
        Update title, content, hashTags and/or category.

        Only the author may update; admins get no override.

        Raises:
            NotFoundError, AuthorizationError, ValidationError
        """
        idea = self.get_idea(idea_id)
        if idea.created_by != user.id:
            raise AuthorizationError("You are not allowed to update this idea")

        fields: Dict[str, Any] = {}

        if "title" in payload:
            title = _text(payload, "title")
            if not title:
                raise ValidationError("Title cannot be empty")
            fields["title"] = title

        if "content" in payload:
            content = _text(payload, "content")
            if not content:
                raise ValidationError("Content cannot be empty")
            fields["content"] = content

        if "hashTags" in payload:
            fields["hashTags"] = _parse_hashtags(payload.get("hashTags"))

        if "category" in payload:
            fields["category"] = _parse_category(payload.get("category"), idea.category)

        if not fields:
            raise ValidationError("No valid fields to update")

        fields["updatedAt"] = datetime.now()

        updated = self.storage.update_idea(idea_id, fields)
        if updated is None:
            raise NotFoundError(IDEA_NOT_FOUND)
        self._log(f"Updated idea {idea_id}: {sorted(fields)}")
        return updated

    def delete_idea(self, user: User, idea_id: str) -> None:
        """
        Delete an idea. Allowed for its author and for admins.

        Raises:
            NotFoundError, AuthorizationError
        """
        idea = self.get_idea(idea_id)
        if idea.created_by != user.id and not user.is_admin:
            raise AuthorizationError("You are not allowed to delete this idea")

        if not self.storage.delete_idea(idea_id):
            raise NotFoundError(IDEA_NOT_FOUND)
        self._log(f"Deleted idea {idea_id} by {user.id}")

    def branch_idea(self, user: User, parent_id: str, payload: Mapping[str, Any]) -> Idea:
        """
        Fork an idea.

        Title and content are required. Category and hashtags default to the
        parent's when not supplied. Any authenticated user may branch.

        Raises:
            ValidationError: On missing title/content or an unknown category.
            NotFoundError: If the parent does not exist.
        """
        title = _text(payload, "title")
        content = _text(payload, "content")
        if not title or not content:
            raise ValidationError("Title and content are required")

        parent = self.storage.get_idea(parent_id)
        if parent is None:
            raise NotFoundError("Parent idea not found")

        if payload.get("hashTags") is None:
            hash_tags = list(parent.hash_tags)
        else:
            hash_tags = _parse_hashtags(payload.get("hashTags"))

        changes = _text(payload, "changes") or None

        try:
            child = Idea(
                title=title,
                content=content,
                hash_tags=hash_tags,
                category=_parse_category(payload.get("category"), parent.category),
                created_by=user.id,
                user_name=user.name,
                user_image=user.image,
                parent_id=parent.id,
                changes=changes,
            )
        except ValueError as e:
            raise ValidationError(str(e))

        try:
            self.storage.create_branch(parent.id, child)
        except RecordNotFoundError:
            raise NotFoundError("Parent idea not found")

        self._log(f"Branched idea {parent.id} -> {child.id}")
        return child

    def repair_branch_links(self) -> RepairResult:
        return self.storage.repair_branch_links()

    # =========================================================================
    # Likes, comments, evaluations
    # =========================================================================

    def toggle_like(self, user: User, idea_id: str) -> LikeResult:
        result = self.storage.toggle_like(idea_id, user.id)
        if result is None:
            raise NotFoundError(IDEA_NOT_FOUND)
        return result

    def unlike(self, user: User, idea_id: str) -> LikeResult:
        result = self.storage.remove_like(idea_id, user.id)
        if result is None:
            raise NotFoundError(IDEA_NOT_FOUND)
        return result

    def add_comment(self, user: User, idea_id: str, payload: Mapping[str, Any]) -> Comment:
        """
        Prepend a comment. Comments are always listed newest first.

        Raises:
            ValidationError: If content is blank.
            NotFoundError: If the idea does not exist.
        """
        content = _text(payload, "content")
        if not content:
            raise ValidationError("Comment content is required")

        comment = Comment(
            content=content,
            created_by=user.id,
            user_name=user.name,
            user_image=user.image,
            tags=_parse_hashtags(payload.get("tags"), "tags"),
        )

        if not self.storage.add_comment(idea_id, comment):
            raise NotFoundError(IDEA_NOT_FOUND)
        return comment

    def evaluate(self, user: User, idea_id: str, payload: Mapping[str, Any]) -> EvaluationOutcome:
        """
        Submit or replace the caller's evaluation.

        Raises:
            ValidationError: If scores are missing or any score is outside 1-5.
            NotFoundError: If the idea does not exist.
        """
        try:
            scores = validate_scores(payload.get("scores"))
        except ValueError as e:
            raise ValidationError(str(e))

        feedback = _text(payload, "feedback") or None

        idea = self.storage.upsert_evaluation(
            idea_id, user.id, user.name, scores, feedback, datetime.now()
        )
        if idea is None:
            raise NotFoundError(IDEA_NOT_FOUND)

        return EvaluationOutcome(
            average_rating=idea.average_rating,
            evaluations_count=len(idea.evaluations),
            user_evaluation=idea.find_evaluation(user.id),
        )
