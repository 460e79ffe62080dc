"""
Base storage abstraction for Idea Platform.

Defines the abstract interface that all storage backends must implement.
This allows swapping between the in-memory store and MongoDB.

Every mutating operation on an idea is a single atomic write against one
document, so concurrent requests cannot lose a like toggle or duplicate an
evaluation. The only multi-document write is branching (child insert plus
parent back-reference); backends document how they keep it consistent.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.models.idea import Comment, Criterion, Idea
from src.models.user import User
from src.query.builder import QuerySpec


class StorageError(Exception):
    """Base class for storage failures that callers are expected to handle."""


class DuplicateEmailError(StorageError):
    """Raised when a user is inserted with an email that is already taken."""


class RecordNotFoundError(StorageError):
    """Raised when a write targets a record that no longer exists."""


@dataclass
class LikeResult:
    """
    Outcome of a like toggle or unlike.

    Attributes:
        likes_count: Number of likes after the write.
        liked: Whether the requesting user now likes the idea.
    """
    likes_count: int
    liked: bool


@dataclass
class SaveResult:
    """Outcome of toggling an idea in a user's saved list."""
    saved: bool
    saved_count: int


@dataclass
class RepairResult:
    """
    Result of a branch-link repair run.

    Attributes:
        scanned: Ideas with a parent that were checked.
        relinked: Parents that were missing the child in `branches`.
        detached: Children whose parent no longer exists (parent_id cleared).
    """
    scanned: int = 0
    relinked: int = 0
    detached: int = 0

    def __str__(self) -> str:
        return (
            f"RepairResult(scanned={self.scanned}, relinked={self.relinked}, "
            f"detached={self.detached})"
        )


class Storage(ABC):
    """
    Abstract base class for all storage backends.

    Implementations must provide:
    - Idea CRUD and paged queries driven by a QuerySpec
    - Atomic sub-collection mutators (likes, comments, evaluations)
    - Branch creation and branch-link repair
    - User persistence

    Read methods return detached copies: mutating a returned object never
    changes stored state.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Return the name of this storage backend.

        Used for logging and debugging.
        """
        pass

    # =========================================================================
    # Ideas
    # =========================================================================

    @abstractmethod
    def insert_idea(self, idea: Idea) -> Idea:
        """Persist a new idea and return it."""
        pass

    @abstractmethod
    def get_idea(self, idea_id: str) -> Optional[Idea]:
        """Return the idea with `idea_id`, or None."""
        pass

    @abstractmethod
    def get_ideas_by_ids(self, idea_ids: List[str]) -> List[Idea]:
        """
        Return the ideas whose ids are in `idea_ids`, in the same order.

        Ids that do not exist are skipped.
        """
        pass

    @abstractmethod
    def find_ideas(self, spec: QuerySpec) -> List[Idea]:
        """
        Return one page of ideas matching `spec.filter`, ordered by `spec.sort`.
        """
        pass

    @abstractmethod
    def count_ideas(self, conditions: Dict[str, Any]) -> int:
        """Count ideas matching a filter document, ignoring pagination."""
        pass

    @abstractmethod
    def update_idea(self, idea_id: str, fields: Dict[str, Any]) -> Optional[Idea]:
        """
        Overwrite top-level document fields (camelCase keys).

        Returns:
            The updated idea, or None if it does not exist.
        """
        pass

    @abstractmethod
    def delete_idea(self, idea_id: str) -> bool:
        """
        Delete an idea and keep lineage consistent.

        The id is removed from its parent's `branches` and its children are
        detached (parent_id cleared).

        Returns:
            True if the idea existed.
        """
        pass

    @abstractmethod
    def toggle_like(self, idea_id: str, user_id: str) -> Optional[LikeResult]:
        """
        Flip `user_id`'s membership in the idea's likes in one atomic write.

        Returns:
            LikeResult, or None if the idea does not exist.
        """
        pass

    @abstractmethod
    def remove_like(self, idea_id: str, user_id: str) -> Optional[LikeResult]:
        """
        Remove `user_id` from the idea's likes (no-op if absent).

        Returns:
            LikeResult with liked=False, or None if the idea does not exist.
        """
        pass

    @abstractmethod
    def add_comment(self, idea_id: str, comment: Comment) -> bool:
        """
        Prepend a comment to the idea's comment list.

        Returns:
            True if the idea exists.
        """
        pass

    @abstractmethod
    def upsert_evaluation(
        self,
        idea_id: str,
        evaluator: str,
        user_name: str,
        scores: Dict[Criterion, int],
        feedback: Optional[str],
        now: datetime,
    ) -> Optional[Idea]:
        """
        Insert or overwrite `evaluator`'s evaluation and recompute the
        average rating in the same atomic write.

        Returns:
            The updated idea, or None if it does not exist.
        """
        pass

    @abstractmethod
    def create_branch(self, parent_id: str, child: Idea) -> Idea:
        """
        Insert `child` and append its id to the parent's `branches`.

        Raises:
            RecordNotFoundError: If the parent does not exist. No child is
                left behind in that case.
        """
        pass

    @abstractmethod
    def repair_branch_links(self) -> RepairResult:
        """
        Restore the lineage invariant after a partial branch write.

        Every idea with a parent must appear in that parent's `branches`;
        ideas whose parent is gone are detached.
        """
        pass

    @abstractmethod
    def distinct_categories(self) -> List[str]:
        """Categories used by at least one idea, sorted."""
        pass

    @abstractmethod
    def top_tags(self, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Most used hashtags.

        Returns:
            List of {"tag": str, "count": int}, count descending then tag.
        """
        pass

    @abstractmethod
    def update_author_details(self, user_id: str, name: str, image: Optional[str]) -> int:
        """
        Refresh the denormalized author name/image on the user's own ideas.

        Returns:
            Number of ideas updated.
        """
        pass

    # =========================================================================
    # Users
    # =========================================================================

    @abstractmethod
    def insert_user(self, user: User) -> User:
        """
        Persist a new user.

        Raises:
            DuplicateEmailError: If the email is already registered.
        """
        pass

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        """Overwrite top-level user document fields. None if missing."""
        pass

    @abstractmethod
    def toggle_saved_idea(self, user_id: str, idea_id: str) -> Optional[SaveResult]:
        """Flip `idea_id`'s membership in the user's saved ideas. None if the user is missing."""
        pass

    def is_available(self) -> bool:
        """
        Check that the backend can serve requests.

        Default implementation returns True. Override for remote backends.
        """
        return True

    def ensure_indexes(self) -> None:
        """Create backend indexes. Default implementation does nothing."""
        return None

    def __str__(self) -> str:
        return f"Storage({self.name})"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
