"""
System Property Tests

Verifies the end-to-end guarantees of the API: derived fields stay in
step with the lists they summarize, toggles are their own inverse,
lineage links are kept in both directions and authorization holds.

Test data and expected values are defined in tests/test_config.py.
Update that file to change test parameters without modifying this script.
"""

import threading

import pytest

from tests.test_config import EXPECTED, TEST_DATA, get_sample_idea


STATUS = EXPECTED["status"]


@pytest.fixture
def post_idea(client, auth_headers):
    def _post(user, payload):
        response = client.post("/api/ideas", json=payload, headers=auth_headers(user))
        assert response.status_code == 201
        return response.get_json()["data"]
    return _post


def _flattened_mean(evaluations):
    scores = [value for e in evaluations for value in e["scores"].values()]
    return sum(scores) / len(scores) if scores else 0.0


@pytest.mark.system_properties
class TestAverageRating:
    """averageRating is always the flattened mean of current evaluations."""

    def test_average_matches_evaluations_after_every_write(
        self, client, author, reader, admin, auth_headers, post_idea
    ):
        """
        GIVEN: An idea evaluated by several users, one of them twice
        WHEN: The idea is fetched after each evaluation
        THEN: averageRating equals the mean of every stored score
        """
        idea = post_idea(author, get_sample_idea(0))
        url = f"/api/ideas/{idea['id']}"
        submissions = [
            (reader, {"feasibility": 2, "innovation": 4}),
            (admin, {"usefulness": 5}),
            (reader, {"feasibility": 1, "marketability": 1, "social_impact": 4}),
            (author, {"cost_efficiency": 3}),
        ]

        for user, scores in submissions:
            client.post(f"{url}/evaluate", json={"scores": scores}, headers=auth_headers(user))
            stored = client.get(url).get_json()["data"]

            assert stored["averageRating"] == pytest.approx(_flattened_mean(stored["evaluations"]))

    def test_no_evaluations_means_zero(self, client, author, post_idea):
        idea = post_idea(author, get_sample_idea(1))
        assert client.get(f"/api/ideas/{idea['id']}").get_json()["data"]["averageRating"] == 0

    def test_flattened_not_mean_of_means(self, client, author, reader, auth_headers, post_idea):
        """
        GIVEN: Two evaluations with different numbers of scores
        WHEN: Both are submitted
        THEN: The average weighs every score equally
        """
        idea = post_idea(author, get_sample_idea(0))
        first, second = TEST_DATA["uneven_evaluations"]

        client.post(f"/api/ideas/{idea['id']}/evaluate", json={"scores": first}, headers=auth_headers(author))
        body = client.post(
            f"/api/ideas/{idea['id']}/evaluate", json={"scores": second}, headers=auth_headers(reader)
        ).get_json()

        assert body["averageRating"] == pytest.approx(TEST_DATA["uneven_evaluations_average"])


@pytest.mark.system_properties
class TestOneEvaluationPerEvaluator:
    """Repeat evaluations replace earlier ones."""

    def test_count_never_exceeds_distinct_evaluators(self, client, author, reader, auth_headers, post_idea):
        """
        GIVEN: Two users who evaluate the same idea five times between them
        WHEN: The idea is fetched
        THEN: It holds exactly two evaluations
        """
        idea = post_idea(author, get_sample_idea(0))
        url = f"/api/ideas/{idea['id']}/evaluate"

        for user, score in [(reader, 1), (author, 2), (reader, 3), (reader, 4), (author, 5)]:
            body = client.post(url, json={"scores": {"feasibility": score}}, headers=auth_headers(user)).get_json()
            assert body["evaluationsCount"] <= 2

        stored = client.get(f"/api/ideas/{idea['id']}").get_json()["data"]
        assert sorted(e["evaluator"] for e in stored["evaluations"]) == sorted([author.id, reader.id])
        assert stored["averageRating"] == pytest.approx(4.5)


@pytest.mark.system_properties
class TestLikeToggle:
    """Liking is a set membership toggle."""

    def test_double_toggle_restores_state(self, client, author, reader, admin, auth_headers, post_idea):
        """
        GIVEN: An idea already liked by one user
        WHEN: Another user toggles the like twice
        THEN: likesCount and membership are back where they started
        """
        idea = post_idea(author, get_sample_idea(0))
        url = f"/api/ideas/{idea['id']}/like"
        client.post(url, headers=auth_headers(admin))
        before = client.get(f"/api/ideas/{idea['id']}").get_json()["data"]

        client.post(url, headers=auth_headers(reader))
        client.post(url, headers=auth_headers(reader))
        after = client.get(f"/api/ideas/{idea['id']}").get_json()["data"]

        assert after["likesCount"] == before["likesCount"] == 1
        assert after["likes"] == before["likes"] == [admin.id]

    def test_likes_count_matches_likes(self, client, author, reader, admin, auth_headers, post_idea):
        idea = post_idea(author, get_sample_idea(0))
        url = f"/api/ideas/{idea['id']}/like"

        for user in [reader, admin, reader, author, admin, admin]:
            client.post(url, headers=auth_headers(user))

        stored = client.get(f"/api/ideas/{idea['id']}").get_json()["data"]
        assert stored["likesCount"] == len(stored["likes"]) == len(set(stored["likes"]))

    def test_concurrent_toggles_are_not_lost(self, idea_service, memory_storage, author):
        """
        GIVEN: Ten threads, each toggling the same idea for a different user
        WHEN: They run at the same time
        THEN: Every like is recorded exactly once
        """
        from src.models.user import User

        idea = idea_service.create_idea(author, get_sample_idea(0))
        users = [
            memory_storage.insert_user(User(name=f"User {i}", email=f"user{i}@example.com", password_hash="x"))
            for i in range(10)
        ]

        threads = [threading.Thread(target=idea_service.toggle_like, args=(u, idea.id)) for u in users]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stored = memory_storage.get_idea(idea.id)
        assert stored.likes_count == 10
        assert sorted(stored.likes) == sorted(u.id for u in users)


@pytest.mark.system_properties
class TestSearchAndSort:
    """Search needs a criterion; sorts are monotonic."""

    def test_search_without_criteria_is_client_error(self, client):
        response = client.get("/api/ideas/search?page=1&sort=newest")
        assert 400 <= response.status_code < 500

    @pytest.mark.parametrize("sort,field", [
        ("mostLiked", "likesCount"),
        ("highestRated", "averageRating"),
        ("mostCommented", "commentsCount"),
    ])
    def test_sorted_listing_is_non_increasing(
        self, client, author, reader, admin, auth_headers, post_idea, sort, field
    ):
        ideas = [post_idea(author, get_sample_idea(i)) for i in range(3)]
        for index, idea in enumerate(ideas):
            for user in [reader, admin][:index]:
                client.post(f"/api/ideas/{idea['id']}/like", headers=auth_headers(user))
                client.post(
                    f"/api/ideas/{idea['id']}/comment", json={"content": "+1"}, headers=auth_headers(user)
                )
            client.post(
                f"/api/ideas/{idea['id']}/evaluate",
                json={"scores": {"innovation": 5 - index * 2}},
                headers=auth_headers(reader),
            )

        values = [i[field] for i in client.get(f"/api/ideas?sort={sort}").get_json()["data"]]

        assert values == sorted(values, reverse=True)


@pytest.mark.system_properties
class TestBranchLineage:
    """Branches inherit from and link back to their parent."""

    def test_branch_inherits_and_links(self, client, author, reader, auth_headers, post_idea):
        """
        GIVEN: Idea A with category technology and tags ["x"]
        WHEN: It is branched with only title and content
        THEN: The child has A's category and tags, parentId A, and A lists the child
        """
        parent = post_idea(author, {"title": "A", "content": "Original", "category": "technology", "hashTags": ["x"]})

        child = client.post(
            f"/api/ideas/{parent['id']}/branch",
            json={"title": "A2", "content": "Derived"},
            headers=auth_headers(reader),
        ).get_json()["data"]

        assert child["category"] == "technology"
        assert child["hashTags"] == ["x"]
        assert child["parentId"] == parent["id"]
        branches = client.get(f"/api/ideas/{parent['id']}").get_json()["data"]["branches"]
        assert child["id"] in [b["id"] for b in branches]

    def test_every_parent_reference_resolves(self, client, memory_storage, author, reader, auth_headers, post_idea):
        root = post_idea(author, get_sample_idea(0))
        first = client.post(
            f"/api/ideas/{root['id']}/branch", json={"title": "B", "content": "b"}, headers=auth_headers(reader)
        ).get_json()["data"]
        client.post(
            f"/api/ideas/{first['id']}/branch", json={"title": "C", "content": "c"}, headers=auth_headers(author)
        )
        client.delete(f"/api/ideas/{first['id']}", headers=auth_headers(reader))

        for idea in client.get("/api/ideas?limit=100").get_json()["data"]:
            if idea["parentId"]:
                parent = memory_storage.get_idea(idea["parentId"])
                assert parent is not None
                assert idea["id"] in parent.branches


@pytest.mark.system_properties
class TestDeleteAuthorization:
    """Only the author or an admin may delete."""

    def test_non_author_forbidden(self, client, author, reader, auth_headers, post_idea):
        idea = post_idea(author, get_sample_idea(0))

        response = client.delete(f"/api/ideas/{idea['id']}", headers=auth_headers(reader))

        assert response.status_code == STATUS["authorization"]
        assert client.get(f"/api/ideas/{idea['id']}").status_code == 200

    @pytest.mark.parametrize("deleter", ["author", "admin"])
    def test_author_or_admin_deletes(self, request, client, author, auth_headers, post_idea, deleter):
        idea = post_idea(author, get_sample_idea(0))
        user = request.getfixturevalue(deleter)

        response = client.delete(f"/api/ideas/{idea['id']}", headers=auth_headers(user))

        assert response.status_code == 200
        assert client.get(f"/api/ideas/{idea['id']}").status_code == STATUS["not_found"]
