"""
Idea Platform - JSON API

Flask routes under /api for ideas, comments, likes, evaluations, branches
and user accounts.

Run with: python -m web.app
Or: python main.py
"""

import sys
from functools import wraps
from pathlib import Path
from typing import Any, Dict, Optional

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from flask import Flask, g, jsonify, request
from pymongo.errors import PyMongoError
from werkzeug.exceptions import HTTPException

from src.config import DEBUG, HOST, PORT
from src.storage import Storage, create_storage
from src.services import (
    IdeaService,
    ServiceError,
    UserService,
    ValidationError,
    parse_bearer,
)

app = Flask(__name__)
app.json.sort_keys = False


# =============================================================================
# Storage & services
# =============================================================================

_storage: Optional[Storage] = None


def get_storage() -> Storage:
    """Get the configured storage backend (created once per process)."""
    global _storage
    if _storage is None:
        _storage = create_storage()
    return _storage


def idea_service() -> IdeaService:
    return IdeaService(get_storage())


def user_service() -> UserService:
    return UserService(get_storage())


def requires_auth(view):
    """Resolve the bearer token to a user and expose it as g.user."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = parse_bearer(request.headers.get("Authorization"))
        g.user = user_service().authenticate(token)
        return view(*args, **kwargs)
    return wrapper


# =============================================================================
# Response helpers
# =============================================================================

def success(data: Any = None, status: int = 200, **extra):
    body = {"success": True, "data": data}
    body.update(extra)
    return jsonify(body), status


def failure(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def json_body() -> Dict[str, Any]:
    """Request JSON as a dict. A missing body counts as empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


@app.errorhandler(ServiceError)
def handle_service_error(error: ServiceError):
    if DEBUG:
        print(f"[web] {request.method} {request.path} -> {error.status_code}: {error.message}")
    return failure(error.message, error.status_code)


@app.errorhandler(HTTPException)
def handle_http_error(error: HTTPException):
    return failure(error.description or error.name, error.code or 500)


@app.errorhandler(PyMongoError)
def handle_storage_error(error: PyMongoError):
    print(f"[web] Storage error on {request.method} {request.path}: {error}")
    return failure(str(error), 500)


@app.errorhandler(Exception)
def handle_unexpected_error(error: Exception):
    print(f"[web] Unexpected error on {request.method} {request.path}: {error!r}")
    return failure(str(error) or "Internal server error", 500)


# =============================================================================
# Ideas
# =============================================================================

@app.route("/api/ideas", methods=["GET"])
def list_ideas():
    """List ideas with optional filters, sort and pagination."""
    ideas, pagination = idea_service().list_ideas(request.args)
    return success([idea.to_dict() for idea in ideas], pagination=pagination)


@app.route("/api/ideas/search", methods=["GET"])
def search_ideas():
    """Search ideas. At least one of query/q, tags/tag, category, minRating is required."""
    ideas, pagination = idea_service().search_ideas(request.args)
    return success([idea.to_dict() for idea in ideas], pagination=pagination)


@app.route("/api/ideas", methods=["POST"])
@requires_auth
def create_idea():
    idea = idea_service().create_idea(g.user, json_body())
    return success(idea.to_dict(), 201)


@app.route("/api/ideas/<idea_id>", methods=["GET"])
def get_idea(idea_id):
    """Fetch one idea with its author and child branches."""
    return success(idea_service().get_idea_detail(idea_id))


@app.route("/api/ideas/<idea_id>", methods=["PUT"])
@requires_auth
def update_idea(idea_id):
    idea = idea_service().update_idea(g.user, idea_id, json_body())
    return success(idea.to_dict())


@app.route("/api/ideas/<idea_id>", methods=["DELETE"])
@requires_auth
def delete_idea(idea_id):
    idea_service().delete_idea(g.user, idea_id)
    return success({"id": idea_id}, message="Idea deleted")


@app.route("/api/ideas/<idea_id>/like", methods=["POST"])
@requires_auth
def toggle_like(idea_id):
    """Like the idea, or unlike it if the caller already likes it."""
    result = idea_service().toggle_like(g.user, idea_id)
    payload = {"likesCount": result.likes_count, "isLiked": result.liked}
    return success(payload, **payload)


@app.route("/api/ideas/<idea_id>/like", methods=["DELETE"])
@requires_auth
def unlike(idea_id):
    result = idea_service().unlike(g.user, idea_id)
    payload = {"likesCount": result.likes_count, "isLiked": False}
    return success(payload, **payload)


@app.route("/api/ideas/<idea_id>/comment", methods=["POST"])
@requires_auth
def add_comment(idea_id):
    comment = idea_service().add_comment(g.user, idea_id, json_body())
    return success(comment.to_dict(), 201)


@app.route("/api/ideas/<idea_id>/evaluate", methods=["POST"])
@requires_auth
def evaluate(idea_id):
    """Submit or replace the caller's evaluation."""
    outcome = idea_service().evaluate(g.user, idea_id, json_body())
    payload = {
        "averageRating": outcome.average_rating,
        "evaluationsCount": outcome.evaluations_count,
        "userEvaluation": outcome.user_evaluation.to_dict() if outcome.user_evaluation else None,
    }
    return success(payload, **payload)


@app.route("/api/ideas/<idea_id>/branch", methods=["POST"])
@requires_auth
def branch_idea(idea_id):
    child = idea_service().branch_idea(g.user, idea_id, json_body())
    return success(child.to_dict(), 201)


@app.route("/api/ideas/<idea_id>/save", methods=["POST"])
@requires_auth
def toggle_saved(idea_id):
    result = user_service().toggle_saved_idea(g.user, idea_id)
    return success({"saved": result.saved, "savedCount": result.saved_count})


# =============================================================================
# Catalogue
# =============================================================================

@app.route("/api/categories", methods=["GET"])
def categories():
    return success(idea_service().categories())


@app.route("/api/tags", methods=["GET"])
def tags():
    """Most used hashtags as [{tag, count}], most frequent first."""
    return success(idea_service().tags())


# =============================================================================
# Users
# =============================================================================

@app.route("/api/register", methods=["POST"])
def register():
    user, token = user_service().register(json_body())
    return success(user.to_dict(), 201, token=token)


@app.route("/api/login", methods=["POST"])
def login():
    user, token = user_service().login(json_body())
    return success(user.to_dict(), token=token)


@app.route("/api/users/me", methods=["GET"])
@requires_auth
def get_me():
    return success(g.user.to_dict())


@app.route("/api/users/me", methods=["PUT"])
@requires_auth
def update_me():
    user = user_service().update_profile(g.user, json_body())
    return success(user.to_dict())


@app.route("/api/users/me/liked", methods=["GET"])
@requires_auth
def my_liked_ideas():
    ideas, pagination = idea_service().liked_ideas(g.user, request.args)
    return success([idea.to_dict() for idea in ideas], pagination=pagination)


@app.route("/api/users/me/saved", methods=["GET"])
@requires_auth
def my_saved_ideas():
    ideas = user_service().saved_ideas(g.user)
    return success([idea.to_dict() for idea in ideas])


@app.route("/api/users/<user_id>", methods=["GET"])
def get_user(user_id):
    return success(user_service().get_user(user_id).to_public_dict())


@app.route("/api/users/<user_id>/ideas", methods=["GET"])
def user_ideas(user_id):
    """A user's ideas, newest first."""
    user = user_service().get_user(user_id)
    ideas, pagination = idea_service().ideas_by_user(user.id, request.args)
    return success([idea.to_dict() for idea in ideas], pagination=pagination)


# =============================================================================
# Diagnostics
# =============================================================================

@app.route("/api/health", methods=["GET"])
def health():
    """Report which backend is configured and whether it answers."""
    storage = get_storage()
    available = storage.is_available()
    body = {"backend": storage.name, "storage": "ok" if available else "unavailable"}
    if not available:
        return jsonify({"success": False, "message": "Storage unavailable", "data": body}), 503
    return success(body)


if __name__ == "__main__":
    print("=" * 50)
    print("Idea Platform API")
    print("=" * 50)
    print(f"Listening on http://{HOST}:{PORT}/api")
    print("Press Ctrl+C to stop")
    print("=" * 50)
    app.run(host=HOST, port=PORT, debug=DEBUG)
