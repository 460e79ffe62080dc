"""
Query/filter builder for Idea Platform.

Translates request parameters into a store-neutral QuerySpec:

    params (query string) -> filter document + sort keys + page window

The filter uses MongoDB query syntax, restricted to the operators listed
below, so the MongoDB backend passes it through unchanged and the memory
backend evaluates the same subset:

    {"$text": {"$search": "..."}}          free-text match on title/content
    {"hashTags": {"$in": [...]}}           any-of tag match
    {"category": "..."}                    equality
    {"createdBy": "..."}                   equality
    {"averageRating": {"$gte": 3.5}}       lower bound

All functions are pure and raise ValueError on bad input.
"""

from dataclasses import dataclass, field
from enum import Enum
from math import ceil
from typing import Any, Dict, List, Mapping, Optional, Tuple

from src.config import DEFAULT_PAGE_LIMIT, DEFAULT_SEARCH_LIMIT, MAX_PAGE_LIMIT
from src.models.idea import Category, normalize_hashtags


DESCENDING = -1
ASCENDING = 1


class SortKey(str, Enum):
    """Supported values of the `sort` parameter."""
    NEWEST = "newest"
    MOST_LIKED = "mostLiked"
    HIGHEST_RATED = "highestRated"
    MOST_COMMENTED = "mostCommented"


# Sort key -> ordered (field, direction) pairs. createdAt breaks ties.
SORT_FIELDS: Dict[SortKey, List[Tuple[str, int]]] = {
    SortKey.NEWEST: [("createdAt", DESCENDING)],
    SortKey.MOST_LIKED: [("likesCount", DESCENDING), ("createdAt", DESCENDING)],
    SortKey.HIGHEST_RATED: [("averageRating", DESCENDING), ("createdAt", DESCENDING)],
    SortKey.MOST_COMMENTED: [("commentsCount", DESCENDING), ("createdAt", DESCENDING)],
}

DEFAULT_SORT = SortKey.NEWEST


# =============================================================================
# Result Data Structures
# =============================================================================

@dataclass
class QuerySpec:
    """
    A filter/sort/page window ready to hand to a Storage backend.

    Attributes:
        filter: MongoDB-style filter document.
        sort: Ordered list of (field, direction) pairs.
        page: 1-indexed page number.
        limit: Page size.
    """
    filter: Dict[str, Any] = field(default_factory=dict)
    sort: List[Tuple[str, int]] = field(default_factory=lambda: list(SORT_FIELDS[DEFAULT_SORT]))
    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT

    @property
    def skip(self) -> int:
        """Number of matching records before this page."""
        return (self.page - 1) * self.limit

    def pagination(self, total: int) -> Dict[str, int]:
        """
        Pagination block for a response.

        Args:
            total: Number of records matching the filter, ignoring pagination.
        """
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "pages": ceil(total / self.limit) if self.limit else 0,
        }


# =============================================================================
# Parameter Parsing
# =============================================================================

def _param(params: Mapping[str, Any], *names: str) -> Optional[str]:
    """First non-blank value among `names`, stripped."""
    for name in names:
        value = params.get(name)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def parse_sort(value: Optional[str]) -> List[Tuple[str, int]]:
    """
    Map a sort key to sort fields.

    Unknown or missing keys fall back to newest first.
    """
    try:
        key = SortKey(value) if value else DEFAULT_SORT
    except ValueError:
        key = DEFAULT_SORT
    return list(SORT_FIELDS[key])


def parse_tags(tags: Optional[str] = None, tag: Optional[str] = None) -> List[str]:
    """
    Parse the tag parameters into a clean list.

    `tags` is a comma-separated list and wins over the single `tag`.

    Example:
        >>> parse_tags("ai, #health,,ai")
        ['ai', 'health']
    """
    if tags:
        return normalize_hashtags(tags.split(","))
    if tag:
        return normalize_hashtags([tag])
    return []


def parse_min_rating(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"minRating must be a number, got {value!r}")


def parse_page(
    params: Mapping[str, Any],
    default_limit: int,
    max_limit: int = MAX_PAGE_LIMIT,
) -> Tuple[int, int]:
    """
    Parse `page` and `limit`.

    Returns:
        (page, limit) with page >= 1 and 1 <= limit <= max_limit.

    Raises:
        ValueError: If either is not an integer or is below 1.
    """
    raw_page = _param(params, "page")
    raw_limit = _param(params, "limit")

    try:
        page = int(raw_page) if raw_page is not None else 1
        limit = int(raw_limit) if raw_limit is not None else default_limit
    except ValueError:
        raise ValueError("page and limit must be integers")

    if page < 1:
        raise ValueError("page must be at least 1")
    if limit < 1:
        raise ValueError("limit must be at least 1")

    return page, min(limit, max_limit)


# =============================================================================
# Filter Construction
# =============================================================================

def build_filter(params: Mapping[str, Any], include_author: bool = True) -> Dict[str, Any]:
    """
    Build a filter document from request parameters.

    Recognized parameters: query / q, tags / tag, category, minRating and,
    when `include_author` is set, createdBy. Blank values are ignored.

    Raises:
        ValueError: On an unknown category or non-numeric minRating.
    """
    conditions: Dict[str, Any] = {}

    text = _param(params, "query", "q")
    if text:
        conditions["$text"] = {"$search": text}

    tag_list = parse_tags(_param(params, "tags"), _param(params, "tag"))
    if tag_list:
        conditions["hashTags"] = {"$in": tag_list}

    category = _param(params, "category")
    if category:
        if category not in Category.values():
            raise ValueError(
                f"category must be one of {', '.join(Category.values())}, got {category!r}"
            )
        conditions["category"] = category

    min_rating = parse_min_rating(_param(params, "minRating"))
    if min_rating is not None:
        conditions["averageRating"] = {"$gte": min_rating}

    if include_author:
        author = _param(params, "createdBy")
        if author:
            conditions["createdBy"] = author

    return conditions


def has_search_criteria(params: Mapping[str, Any]) -> bool:
    """
    True when the search parameters produce at least one filter condition.

    Values that clean down to nothing, such as `tags=,` or `tag=#`, do not count.
    """
    return bool(build_filter(params, include_author=False))


def build_list_query(
    params: Mapping[str, Any],
    default_limit: int = DEFAULT_PAGE_LIMIT,
    max_limit: int = MAX_PAGE_LIMIT,
) -> QuerySpec:
    """
    Build the query for GET /api/ideas. Every filter is optional.
    """
    page, limit = parse_page(params, default_limit, max_limit)
    return QuerySpec(
        filter=build_filter(params),
        sort=parse_sort(_param(params, "sort")),
        page=page,
        limit=limit,
    )


def build_search_query(
    params: Mapping[str, Any],
    default_limit: int = DEFAULT_SEARCH_LIMIT,
    max_limit: int = MAX_PAGE_LIMIT,
) -> QuerySpec:
    """
    Build the query for GET /api/ideas/search.

    Raises:
        ValueError: If none of query/q, tags/tag, category or minRating is given.
    """
    conditions = build_filter(params, include_author=False)
    if not conditions:
        raise ValueError(
            "At least one search parameter is required (query/q, tags/tag, category, minRating)"
        )

    page, limit = parse_page(params, default_limit, max_limit)
    return QuerySpec(
        filter=conditions,
        sort=parse_sort(_param(params, "sort")),
        page=page,
        limit=limit,
    )
