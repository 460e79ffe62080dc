"""
In-memory storage backend for Idea Platform.

Use this for local development and tests. Data is stored in process memory
and lost when the process ends.

A single re-entrant lock serializes every read-modify-write, which gives each
operation the same all-or-nothing behaviour the MongoDB backend gets from
single-document updates. Branch creation writes both records under the lock,
so this backend never produces a dangling back-reference.

Filters are the MongoDB-style documents produced by src.query.builder; only
the operators that module emits (plus $ne/$exists/$or) are understood.
"""

import copy
import threading
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.evaluation.aggregator import upsert_evaluation as apply_evaluation
from src.models.idea import Comment, Criterion, Idea
from src.models.user import User, normalize_email
from src.query.builder import QuerySpec
from src.storage.base import (
    DuplicateEmailError,
    LikeResult,
    RecordNotFoundError,
    RepairResult,
    SaveResult,
    Storage,
)


# =============================================================================
# Filter Evaluation
# =============================================================================

def _text_matches(doc: Dict[str, Any], search: str) -> bool:
    """Any whitespace-separated term found in title or content (case-insensitive)."""
    haystack = f"{doc.get('title', '')} {doc.get('content', '')}".lower()
    return any(term in haystack for term in search.lower().split())


def _field_matches(value: Any, expected: Any) -> bool:
    values = value if isinstance(value, list) else [value]

    if isinstance(expected, dict) and expected and all(k.startswith("$") for k in expected):
        for op, operand in expected.items():
            if op == "$in":
                ok = any(v in operand for v in values)
            elif op == "$gte":
                ok = value is not None and not isinstance(value, list) and value >= operand
            elif op == "$ne":
                ok = operand not in values
            elif op == "$exists":
                ok = (value is not None) == bool(operand)
            else:
                raise ValueError(f"Unsupported filter operator: {op}")
            if not ok:
                return False
        return True

    if isinstance(value, list):
        return expected in value
    return value == expected


def matches_filter(doc: Dict[str, Any], conditions: Dict[str, Any]) -> bool:
    """
    Evaluate a MongoDB-style filter document against a document.

    Args:
        doc: Document as produced by Idea.to_document().
        conditions: Filter document.

    Returns:
        True if every condition holds.
    """
    for key, expected in conditions.items():
        if key == "$text":
            if not _text_matches(doc, expected.get("$search", "")):
                return False
        elif key == "$or":
            if not any(matches_filter(doc, sub) for sub in expected):
                return False
        elif not _field_matches(doc.get(key), expected):
            return False
    return True


def sort_documents(docs: List[Dict[str, Any]], sort: List[tuple]) -> List[Dict[str, Any]]:
    """Multi-key sort; applies keys last-to-first relying on sort stability."""
    ordered = list(docs)
    for field_name, direction in reversed(sort):
        ordered.sort(
            key=lambda d: (d.get(field_name) is not None, d.get(field_name) or 0),
            reverse=direction < 0,
        )
    return ordered


# =============================================================================
# Storage
# =============================================================================

class MemoryStorage(Storage):
    """
    In-memory storage for testing and development.

    Ideas and users are kept as model objects keyed by id; every public
    method takes the lock and returns deep copies.
    """

    def __init__(self):
        self._ideas: Dict[str, Idea] = {}
        self._users: Dict[str, User] = {}
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return "memory"

    # =========================================================================
    # Ideas
    # =========================================================================

    def insert_idea(self, idea: Idea) -> Idea:
        with self._lock:
            self._ideas[idea.id] = copy.deepcopy(idea)
            return copy.deepcopy(idea)

    def get_idea(self, idea_id: str) -> Optional[Idea]:
        with self._lock:
            idea = self._ideas.get(idea_id)
            return copy.deepcopy(idea) if idea else None

    def get_ideas_by_ids(self, idea_ids: List[str]) -> List[Idea]:
        with self._lock:
            return [copy.deepcopy(self._ideas[i]) for i in idea_ids if i in self._ideas]

    def _matching_documents(self, conditions: Dict[str, Any]) -> List[Dict[str, Any]]:
        docs = (idea.to_document() for idea in self._ideas.values())
        return [doc for doc in docs if matches_filter(doc, conditions)]

    def find_ideas(self, spec: QuerySpec) -> List[Idea]:
        with self._lock:
            docs = sort_documents(self._matching_documents(spec.filter), spec.sort)
            page = docs[spec.skip:spec.skip + spec.limit]
            return [copy.deepcopy(self._ideas[doc["_id"]]) for doc in page]

    def count_ideas(self, conditions: Dict[str, Any]) -> int:
        with self._lock:
            return len(self._matching_documents(conditions))

    def update_idea(self, idea_id: str, fields: Dict[str, Any]) -> Optional[Idea]:
        with self._lock:
            idea = self._ideas.get(idea_id)
            if idea is None:
                return None
            doc = idea.to_document()
            doc.update(fields)
            updated = Idea.from_document(doc)
            self._ideas[idea_id] = updated
            return copy.deepcopy(updated)

    def delete_idea(self, idea_id: str) -> bool:
        with self._lock:
            idea = self._ideas.pop(idea_id, None)
            if idea is None:
                return False

            parent = self._ideas.get(idea.parent_id) if idea.parent_id else None
            if parent is not None and idea_id in parent.branches:
                parent.branches.remove(idea_id)

            for child in self._ideas.values():
                if child.parent_id == idea_id:
                    child.parent_id = None

            return True

    def toggle_like(self, idea_id: str, user_id: str) -> Optional[LikeResult]:
        with self._lock:
            idea = self._ideas.get(idea_id)
            if idea is None:
                return None
            if user_id in idea.likes:
                idea.likes.remove(user_id)
                liked = False
            else:
                idea.likes.append(user_id)
                liked = True
            return LikeResult(likes_count=idea.likes_count, liked=liked)

    def remove_like(self, idea_id: str, user_id: str) -> Optional[LikeResult]:
        with self._lock:
            idea = self._ideas.get(idea_id)
            if idea is None:
                return None
            idea.likes = [uid for uid in idea.likes if uid != user_id]
            return LikeResult(likes_count=idea.likes_count, liked=False)

    def add_comment(self, idea_id: str, comment: Comment) -> bool:
        with self._lock:
            idea = self._ideas.get(idea_id)
            if idea is None:
                return False
            idea.comments.insert(0, copy.deepcopy(comment))
            return True

    def upsert_evaluation(
        self,
        idea_id: str,
        evaluator: str,
        user_name: str,
        scores: Dict[Criterion, int],
        feedback: Optional[str],
        now: datetime,
    ) -> Optional[Idea]:
        with self._lock:
            idea = self._ideas.get(idea_id)
            if idea is None:
                return None
            apply_evaluation(idea, evaluator, user_name, scores, feedback, now)
            return copy.deepcopy(idea)

    def create_branch(self, parent_id: str, child: Idea) -> Idea:
        with self._lock:
            parent = self._ideas.get(parent_id)
            if parent is None:
                raise RecordNotFoundError(f"Parent idea {parent_id} not found")
            self._ideas[child.id] = copy.deepcopy(child)
            if child.id not in parent.branches:
                parent.branches.append(child.id)
            return copy.deepcopy(child)

    def repair_branch_links(self) -> RepairResult:
        result = RepairResult()
        with self._lock:
            for idea in self._ideas.values():
                if not idea.parent_id:
                    continue
                result.scanned += 1
                parent = self._ideas.get(idea.parent_id)
                if parent is None:
                    idea.parent_id = None
                    result.detached += 1
                elif idea.id not in parent.branches:
                    parent.branches.append(idea.id)
                    result.relinked += 1
        return result

    def distinct_categories(self) -> List[str]:
        with self._lock:
            return sorted({idea.category for idea in self._ideas.values()})

    def top_tags(self, limit: int = 100) -> List[Dict[str, Any]]:
        with self._lock:
            counts = Counter(tag for idea in self._ideas.values() for tag in idea.hash_tags)
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        return [{"tag": tag, "count": count} for tag, count in ranked[:limit]]

    def update_author_details(self, user_id: str, name: str, image: Optional[str]) -> int:
        updated = 0
        with self._lock:
            for idea in self._ideas.values():
                if idea.created_by == user_id:
                    idea.user_name = name
                    idea.user_image = image
                    updated += 1
        return updated

    # =========================================================================
    # Users
    # =========================================================================

    def insert_user(self, user: User) -> User:
        with self._lock:
            if self._find_user_by_email(user.email) is not None:
                raise DuplicateEmailError(f"Email already registered: {user.email}")
            self._users[user.id] = copy.deepcopy(user)
            return copy.deepcopy(user)

    def _find_user_by_email(self, email: str) -> Optional[User]:
        email = normalize_email(email)
        for user in self._users.values():
            if user.email == email:
                return user
        return None

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return copy.deepcopy(user) if user else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            user = self._find_user_by_email(email)
            return copy.deepcopy(user) if user else None

    def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            doc = user.to_document()
            doc.update(fields)
            updated = User.from_document(doc)
            self._users[user_id] = updated
            return copy.deepcopy(updated)

    def toggle_saved_idea(self, user_id: str, idea_id: str) -> Optional[SaveResult]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            if idea_id in user.saved_ideas:
                user.saved_ideas.remove(idea_id)
                saved = False
            else:
                user.saved_ideas.append(idea_id)
                saved = True
            return SaveResult(saved=saved, saved_count=len(user.saved_ideas))

    # =========================================================================
    # Test helpers
    # =========================================================================

    def clear(self) -> None:
        """Clear all records (for testing)."""
        with self._lock:
            self._ideas.clear()
            self._users.clear()

    def count(self) -> int:
        """Return number of stored ideas (for testing)."""
        return len(self._ideas)
