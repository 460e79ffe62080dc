"""
Tests for the MongoDB backend against a running server.

The mocked tests in test_mongo_storage.py only check which update
documents are sent. These run the same pipelines on a real server and
compare the outcome with the in-memory backend, which computes the same
values in Python.

Skipped unless MONGODB_TEST_URI points at a server, e.g.

    MONGODB_TEST_URI=mongodb://localhost:27017 pytest tests/test_mongo_live.py

Each test uses a fresh database that is dropped afterwards.
"""

import os
from datetime import datetime

import pytest

from src.models.idea import Comment, Criterion, Idea, new_id
from src.query.builder import build_search_query
from src.storage.memory import MemoryStorage
from src.storage.mongo import MongoStorage


MONGODB_TEST_URI = os.getenv("MONGODB_TEST_URI")

pytestmark = pytest.mark.skipif(
    not MONGODB_TEST_URI,
    reason="MONGODB_TEST_URI not set; no MongoDB server to run against",
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def mongo():
    storage = MongoStorage(
        uri=MONGODB_TEST_URI,
        database=f"idea_platform_test_{new_id()[:8]}",
        use_transactions=False,
    )
    storage.ensure_indexes()
    yield storage
    storage._client.drop_database(storage.database)
    storage._client.close()


@pytest.fixture(params=["memory", "mongo"])
def storage(request):
    """Each test runs once per backend so results can be compared directly."""
    if request.param == "memory":
        return MemoryStorage()
    return request.getfixturevalue("mongo")


def _idea(title="Solar kiosk", content="Charge phones from the sun"):
    return Idea(
        title=title,
        content=content,
        created_by="u1",
        user_name="Aiko",
        hash_tags=["energy"],
        created_at=datetime(2025, 2, 1, 10, 0),
    )


# =============================================================================
# Test Average Rating
# =============================================================================

class TestLiveAverageRating:
    """The flattened mean computed by the aggregation expression."""

    def test_flattened_mean_not_mean_of_means(self, storage):
        """
        GIVEN evaluations with different numbers of scored criteria
        WHEN both are stored
        THEN the average weighs every score equally
        """
        idea = storage.insert_idea(_idea())
        now = datetime(2025, 2, 2, 8, 0)

        storage.upsert_evaluation(
            idea.id, "u2", "B", {Criterion.FEASIBILITY: 5, Criterion.INNOVATION: 3}, None, now
        )
        updated = storage.upsert_evaluation(idea.id, "u3", "C", {Criterion.FEASIBILITY: 1}, None, now)

        assert updated.average_rating == pytest.approx(3.0)
        assert storage.get_idea(idea.id).average_rating == pytest.approx(3.0)

    def test_re_evaluation_replaces_scores(self, storage):
        idea = storage.insert_idea(_idea())
        now = datetime(2025, 2, 2, 8, 0)

        storage.upsert_evaluation(idea.id, "u2", "B", {Criterion.FEASIBILITY: 1}, None, now)
        updated = storage.upsert_evaluation(
            idea.id, "u2", "B", {Criterion.FEASIBILITY: 4, Criterion.USEFULNESS: 5}, "Better", now
        )

        assert len(updated.evaluations) == 1
        assert updated.find_evaluation("u2").feedback == "Better"
        assert updated.average_rating == pytest.approx(4.5)

    def test_non_integral_mean(self, storage):
        idea = storage.insert_idea(_idea())
        now = datetime(2025, 2, 2, 8, 0)

        storage.upsert_evaluation(
            idea.id,
            "u2",
            "B",
            {Criterion.FEASIBILITY: 2, Criterion.INNOVATION: 3, Criterion.SOCIAL_IMPACT: 3},
            None,
            now,
        )

        assert storage.get_idea(idea.id).average_rating == pytest.approx(8 / 3)


# =============================================================================
# Test Likes & Comments
# =============================================================================

class TestLiveMutators:
    """Likes and comments written with single atomic updates."""

    def test_toggle_like_round_trip(self, storage):
        idea = storage.insert_idea(_idea())

        first = storage.toggle_like(idea.id, "u2")
        second = storage.toggle_like(idea.id, "u3")
        third = storage.toggle_like(idea.id, "u2")

        assert (first.liked, first.likes_count) == (True, 1)
        assert (second.liked, second.likes_count) == (True, 2)
        assert (third.liked, third.likes_count) == (False, 1)
        assert storage.get_idea(idea.id).likes == ["u3"]

    def test_remove_like_when_absent(self, storage):
        idea = storage.insert_idea(_idea())

        result = storage.remove_like(idea.id, "u2")

        assert (result.liked, result.likes_count) == (False, 0)

    def test_comments_newest_first(self, storage):
        idea = storage.insert_idea(_idea())

        storage.add_comment(idea.id, Comment(content="First", created_by="u2", user_name="B"))
        storage.add_comment(idea.id, Comment(content="Second", created_by="u3", user_name="C"))

        stored = storage.get_idea(idea.id)
        assert [c.content for c in stored.comments] == ["Second", "First"]
        assert stored.comments_count == 2


# =============================================================================
# Test Search
# =============================================================================

class TestLiveSearch:
    """Text search after indexes are created."""

    def test_text_search_finds_title_and_content(self, storage):
        storage.insert_idea(_idea())
        storage.insert_idea(_idea(title="Bike library", content="Lend bicycles to neighbours"))

        spec = build_search_query({"q": "bicycles"})
        found = storage.find_ideas(spec)

        assert [i.title for i in found] == ["Bike library"]
        assert storage.count_ideas(spec.filter) == 1
