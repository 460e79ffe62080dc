"""
MongoDB storage backend for Idea Platform.

Implements the Storage interface on two collections:

| Collection | Document                     | Key      |
|------------|------------------------------|----------|
| ideas      | Idea.to_document()           | _id (hex)|
| users      | User.to_document()           | _id (hex)|

Concurrency model
-----------------
Every idea mutator is one update against one document:

- like toggle / unlike: an aggregation-pipeline update that rewrites
  `likes` conditionally on membership and recomputes `likesCount`
- comment: `$push` at position 0 plus `$inc` on `commentsCount`
- evaluation: a pipeline update that replaces or appends the evaluator's
  entry and recomputes `averageRating` from the resulting array

so two concurrent requests cannot lose or duplicate an entry.

Branching touches two documents. With MONGODB_TRANSACTIONS=true both writes
run in a multi-document transaction (needs a replica set). Without it the
child is written first; if the parent vanished in between, the child is
deleted again. `repair_branch_links()` restores back-references left
behind by any other interruption.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument, TEXT
from pymongo.errors import DuplicateKeyError, PyMongoError

from src.config import (
    DEBUG,
    MONGODB_DATABASE,
    MONGODB_TRANSACTIONS,
    MONGODB_URI,
)
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


def _lit(value: Any) -> Dict[str, Any]:
    """Wrap a value so pipeline updates never read it as a field path."""
    return {"$literal": value}


def _toggle_member(array_field: str, member: str) -> Dict[str, Any]:
    """Pipeline expression: `array_field` with `member` removed if present, appended if not."""
    current = {"$ifNull": [f"${array_field}", []]}
    return {
        "$cond": [
            {"$in": [_lit(member), current]},
            {"$filter": {"input": current, "cond": {"$ne": ["$$this", _lit(member)]}}},
            {"$concatArrays": [current, _lit([member])]},
        ]
    }


def _remove_member(array_field: str, member: str) -> Dict[str, Any]:
    current = {"$ifNull": [f"${array_field}", []]}
    return {"$filter": {"input": current, "cond": {"$ne": ["$$this", _lit(member)]}}}


# Flattened mean of every score in every evaluation; 0 when there are none.
AVERAGE_RATING_EXPR: Dict[str, Any] = {
    "$let": {
        "vars": {
            "scores": {
                "$reduce": {
                    "input": {"$ifNull": ["$evaluations", []]},
                    "initialValue": [],
                    "in": {
                        "$concatArrays": [
                            "$$value",
                            {
                                "$map": {
                                    "input": {"$objectToArray": {"$ifNull": ["$$this.scores", {}]}},
                                    "as": "kv",
                                    "in": "$$kv.v",
                                }
                            },
                        ]
                    },
                }
            }
        },
        "in": {"$ifNull": [{"$avg": "$$scores"}, 0]},
    }
}


class MongoStorage(Storage):
    """
    MongoDB-backed storage implementation.

    Configuration is pulled from environment variables via src.config:
    - MONGODB_URI: connection string
    - MONGODB_DATABASE: database name
    - MONGODB_TRANSACTIONS: run branch writes in a transaction
    """

    IDEAS = "ideas"
    USERS = "users"

    def __init__(
        self,
        uri: str = None,
        database: str = None,
        client: MongoClient = None,
        use_transactions: bool = None,
    ):
        """
        Initialize MongoStorage.

        Args:
            uri: Connection string. Defaults to config.MONGODB_URI.
            database: Database name. Defaults to config.MONGODB_DATABASE.
            client: Pre-built client (tests pass a mock). Created lazily from `uri` otherwise.
            use_transactions: Defaults to config.MONGODB_TRANSACTIONS.
        """
        self.uri = uri if uri is not None else MONGODB_URI
        self.database = database if database is not None else MONGODB_DATABASE
        self.use_transactions = (
            use_transactions if use_transactions is not None else MONGODB_TRANSACTIONS
        )
        self._client = client if client is not None else MongoClient(self.uri, tz_aware=False)
        self._db = self._client[self.database]

    @property
    def name(self) -> str:
        return "mongo"

    @property
    def _ideas(self):
        return self._db[self.IDEAS]

    @property
    def _users(self):
        return self._db[self.USERS]

    def is_available(self) -> bool:
        try:
            self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            print(f"[storage:{self.name}] Ping failed: {e}")
            return False

    def ensure_indexes(self) -> None:
        """Create the indexes listing, search and sorting rely on."""
        self._ideas.create_index([("title", TEXT), ("content", TEXT)])
        self._ideas.create_index([("hashTags", ASCENDING)])
        self._ideas.create_index([("category", ASCENDING)])
        self._ideas.create_index([("createdBy", ASCENDING)])
        self._ideas.create_index([("parentId", ASCENDING)])
        self._ideas.create_index([("createdAt", DESCENDING)])
        self._ideas.create_index([("averageRating", DESCENDING)])
        self._ideas.create_index([("likesCount", DESCENDING)])
        self._ideas.create_index([("commentsCount", DESCENDING)])
        self._users.create_index([("email", ASCENDING)], unique=True)
        if DEBUG:
            print(f"[storage:{self.name}] Indexes ensured on {self.database}")

    # =========================================================================
    # Ideas
    # =========================================================================

    def insert_idea(self, idea: Idea) -> Idea:
        self._ideas.insert_one(idea.to_document())
        return idea

    def get_idea(self, idea_id: str) -> Optional[Idea]:
        doc = self._ideas.find_one({"_id": idea_id})
        return Idea.from_document(doc) if doc else None

    def get_ideas_by_ids(self, idea_ids: List[str]) -> List[Idea]:
        if not idea_ids:
            return []
        by_id = {
            doc["_id"]: Idea.from_document(doc)
            for doc in self._ideas.find({"_id": {"$in": list(idea_ids)}})
        }
        return [by_id[i] for i in idea_ids if i in by_id]

    def find_ideas(self, spec: QuerySpec) -> List[Idea]:
        cursor = (
            self._ideas.find(spec.filter)
            .sort(spec.sort)
            .skip(spec.skip)
            .limit(spec.limit)
        )
        return [Idea.from_document(doc) for doc in cursor]

    def count_ideas(self, conditions: Dict[str, Any]) -> int:
        return self._ideas.count_documents(conditions)

    def update_idea(self, idea_id: str, fields: Dict[str, Any]) -> Optional[Idea]:
        doc = self._ideas.find_one_and_update(
            {"_id": idea_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        return Idea.from_document(doc) if doc else None

    def delete_idea(self, idea_id: str) -> bool:
        doc = self._ideas.find_one_and_delete({"_id": idea_id})
        if doc is None:
            return False

        if doc.get("parentId"):
            self._ideas.update_one(
                {"_id": doc["parentId"]},
                {"$pull": {"branches": idea_id}},
            )
        self._ideas.update_many({"parentId": idea_id}, {"$set": {"parentId": None}})
        return True

    def toggle_like(self, idea_id: str, user_id: str) -> Optional[LikeResult]:
        doc = self._ideas.find_one_and_update(
            {"_id": idea_id},
            [
                {"$set": {"likes": _toggle_member("likes", user_id)}},
                {"$set": {"likesCount": {"$size": "$likes"}}},
            ],
            projection={"likes": 1, "likesCount": 1},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return None
        return LikeResult(likes_count=doc["likesCount"], liked=user_id in doc["likes"])

    def remove_like(self, idea_id: str, user_id: str) -> Optional[LikeResult]:
        doc = self._ideas.find_one_and_update(
            {"_id": idea_id},
            [
                {"$set": {"likes": _remove_member("likes", user_id)}},
                {"$set": {"likesCount": {"$size": "$likes"}}},
            ],
            projection={"likesCount": 1},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return None
        return LikeResult(likes_count=doc["likesCount"], liked=False)

    def add_comment(self, idea_id: str, comment: Comment) -> bool:
        result = self._ideas.update_one(
            {"_id": idea_id},
            {
                "$push": {"comments": {"$each": [comment.to_document()], "$position": 0}},
                "$inc": {"commentsCount": 1},
            },
        )
        return result.matched_count > 0

    def upsert_evaluation(
        self,
        idea_id: str,
        evaluator: str,
        user_name: str,
        scores: Dict[Criterion, int],
        feedback: Optional[str],
        now: datetime,
    ) -> Optional[Idea]:
        score_doc = {criterion.value: value for criterion, value in scores.items()}
        new_entry = {
            "evaluator": evaluator,
            "userName": user_name,
            "scores": score_doc,
            "feedback": feedback,
            "createdAt": now,
            "updatedAt": None,
        }
        current = {"$ifNull": ["$evaluations", []]}
        already_evaluated = {"$in": [_lit(evaluator), {"$ifNull": ["$evaluations.evaluator", []]}]}

        pipeline = [
            {
                "$set": {
                    "evaluations": {
                        "$cond": [
                            already_evaluated,
                            {
                                "$map": {
                                    "input": current,
                                    "as": "e",
                                    "in": {
                                        "$cond": [
                                            {"$eq": ["$$e.evaluator", _lit(evaluator)]},
                                            {
                                                "$mergeObjects": [
                                                    "$$e",
                                                    {
                                                        "scores": _lit(score_doc),
                                                        "feedback": _lit(feedback),
                                                        "updatedAt": _lit(now),
                                                    },
                                                ]
                                            },
                                            "$$e",
                                        ]
                                    },
                                }
                            },
                            {"$concatArrays": [current, _lit([new_entry])]},
                        ]
                    }
                }
            },
            {"$set": {"averageRating": AVERAGE_RATING_EXPR, "updatedAt": _lit(now)}},
        ]

        doc = self._ideas.find_one_and_update(
            {"_id": idea_id},
            pipeline,
            return_document=ReturnDocument.AFTER,
        )
        return Idea.from_document(doc) if doc else None

    def _write_branch(self, parent_id: str, child: Idea, session=None) -> None:
        self._ideas.insert_one(child.to_document(), session=session)
        result = self._ideas.update_one(
            {"_id": parent_id},
            {"$addToSet": {"branches": child.id}},
            session=session,
        )
        if result.matched_count == 0:
            raise RecordNotFoundError(f"Parent idea {parent_id} not found")

    def create_branch(self, parent_id: str, child: Idea) -> Idea:
        if self.use_transactions:
            with self._client.start_session() as session:
                session.with_transaction(lambda s: self._write_branch(parent_id, child, session=s))
            return child

        try:
            self._write_branch(parent_id, child)
        except RecordNotFoundError:
            # Parent disappeared between the two writes: undo the child
            self._ideas.delete_one({"_id": child.id})
            raise
        return child

    def repair_branch_links(self) -> RepairResult:
        result = RepairResult()

        for doc in self._ideas.find({"parentId": {"$ne": None}}, {"_id": 1, "parentId": 1}):
            result.scanned += 1
            update = self._ideas.update_one(
                {"_id": doc["parentId"]},
                {"$addToSet": {"branches": doc["_id"]}},
            )
            if update.matched_count == 0:
                self._ideas.update_one({"_id": doc["_id"]}, {"$set": {"parentId": None}})
                result.detached += 1
            elif update.modified_count > 0:
                result.relinked += 1

        return result

    def distinct_categories(self) -> List[str]:
        return sorted(c for c in self._ideas.distinct("category") if c)

    def top_tags(self, limit: int = 100) -> List[Dict[str, Any]]:
        pipeline = [
            {"$unwind": "$hashTags"},
            {"$group": {"_id": "$hashTags", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
            {"$limit": limit},
            {"$project": {"_id": 0, "tag": "$_id", "count": 1}},
        ]
        return list(self._ideas.aggregate(pipeline))

    def update_author_details(self, user_id: str, name: str, image: Optional[str]) -> int:
        result = self._ideas.update_many(
            {"createdBy": user_id},
            {"$set": {"userName": name, "userImage": image}},
        )
        return result.modified_count

    # =========================================================================
    # Users
    # =========================================================================

    def insert_user(self, user: User) -> User:
        if self._users.find_one({"email": user.email}, {"_id": 1}) is not None:
            raise DuplicateEmailError(f"Email already registered: {user.email}")
        try:
            self._users.insert_one(user.to_document())
        except DuplicateKeyError:
            raise DuplicateEmailError(f"Email already registered: {user.email}")
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        doc = self._users.find_one({"_id": user_id})
        return User.from_document(doc) if doc else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        doc = self._users.find_one({"email": normalize_email(email)})
        return User.from_document(doc) if doc else None

    def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        doc = self._users.find_one_and_update(
            {"_id": user_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        return User.from_document(doc) if doc else None

    def toggle_saved_idea(self, user_id: str, idea_id: str) -> Optional[SaveResult]:
        doc = self._users.find_one_and_update(
            {"_id": user_id},
            [{"$set": {"savedIdeas": _toggle_member("savedIdeas", idea_id)}}],
            projection={"savedIdeas": 1},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return None
        saved_ideas = doc.get("savedIdeas") or []
        return SaveResult(saved=idea_id in saved_ideas, saved_count=len(saved_ideas))
