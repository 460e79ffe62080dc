"""
Query module.

Builds filter/sort/page specifications for idea listing and search.
"""

from src.query.builder import (
    DEFAULT_SORT,
    SORT_FIELDS,
    QuerySpec,
    SortKey,
    build_filter,
    build_list_query,
    build_search_query,
    has_search_criteria,
    parse_page,
    parse_sort,
    parse_tags,
)

__all__ = [
    "DEFAULT_SORT",
    "SORT_FIELDS",
    "QuerySpec",
    "SortKey",
    "build_filter",
    "build_list_query",
    "build_search_query",
    "has_search_criteria",
    "parse_page",
    "parse_sort",
    "parse_tags",
]
