"""
User service - registration, login, token authentication and profiles.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from src.config import DEBUG
from src.models.idea import Idea
from src.models.user import User, is_valid_email, normalize_email
from src.storage.base import DuplicateEmailError, SaveResult, Storage
from src.services.auth import (
    MIN_PASSWORD_LENGTH,
    TokenSigner,
    hash_password,
    verify_password,
)
from src.services.errors import AuthenticationError, NotFoundError, ValidationError


INVALID_CREDENTIALS = "Invalid credentials"

# Profile fields a user may change through PUT /api/users/me
PROFILE_TEXT_FIELDS = ("name", "bio", "image")
PROFILE_LIST_FIELDS = ("expertise", "interests")


def _credentials(payload: Mapping[str, Any], *names: str) -> List[Any]:
    """Pull credential fields, rejecting anything that is not a string."""
    values = [payload.get(name) for name in names]
    for name, value in zip(names, values):
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{name} must be a string")
    return [value or "" for value in values]


def _clean_list(value: Any, field_name: str) -> List[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field_name} must be a list of strings")
    cleaned: List[str] = []
    for item in value:
        item = str(item).strip()
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned


class UserService:
    """
    User operations on top of a Storage backend.

    Args:
        storage: Backend holding user records.
        signer: Token signer. Defaults to one built from config.
    """

    def __init__(self, storage: Storage, signer: Optional[TokenSigner] = None):
        self.storage = storage
        self.signer = signer or TokenSigner()

    # =========================================================================
    # Registration & login
    # =========================================================================

    def register(self, payload: Mapping[str, Any]) -> Tuple[User, str]:
        """
        Create an account and issue a token.

        Returns:
            (user, token)

        Raises:
            ValidationError: On missing or non-string fields, a malformed email,
                a short password, or an email that is already registered.
        """
        name, email, password = _credentials(payload, "name", "email", "password")
        name = name.strip()
        email = normalize_email(email)

        if not name or not email or not password:
            raise ValidationError("Name, email and password are required")
        if not is_valid_email(email):
            raise ValidationError("Email address is not valid")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        user = User(name=name, email=email, password_hash=hash_password(password))

        try:
            self.storage.insert_user(user)
        except DuplicateEmailError:
            raise ValidationError("User already exists")

        if DEBUG:
            print(f"[users] Registered {user.id}")
        return user, self.signer.issue(user.id)

    def login(self, payload: Mapping[str, Any]) -> Tuple[User, str]:
        """
        Check credentials and issue a token.

        Unknown email and wrong password give the same error.

        Raises:
            ValidationError: On missing or non-string fields or bad credentials.
        """
        email, password = _credentials(payload, "email", "password")
        email = normalize_email(email)
        if not email or not password:
            raise ValidationError("Email and password are required")

        user = self.storage.get_user_by_email(email)
        if user is None or not verify_password(user.password_hash, password):
            raise ValidationError(INVALID_CREDENTIALS)

        return user, self.signer.issue(user.id)

    def authenticate(self, token: Optional[str]) -> User:
        """
        Resolve a bearer token to its user.

        Raises:
            AuthenticationError: Bad token, or the user no longer exists.
        """
        user_id = self.signer.verify(token)
        user = self.storage.get_user(user_id)
        if user is None:
            raise AuthenticationError("User not found")
        return user

    # =========================================================================
    # Profiles
    # =========================================================================

    def get_user(self, user_id: str) -> User:
        user = self.storage.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def update_profile(self, user: User, payload: Mapping[str, Any]) -> User:
        """
        Update the caller's profile.

        A changed name or image is copied onto the user's own ideas so
        listings show the current author details. Copies on comments and
        evaluations are left as written.

        Raises:
            ValidationError: If name is blanked or a list field is malformed.
        """
        fields: Dict[str, Any] = {}

        for key in PROFILE_TEXT_FIELDS:
            if key in payload:
                value = payload.get(key)
                value = str(value).strip() if value is not None else None
                if key == "name" and not value:
                    raise ValidationError("Name cannot be empty")
                fields[key] = value or None

        for key in PROFILE_LIST_FIELDS:
            if key in payload:
                fields[key] = _clean_list(payload.get(key) or [], key)

        if not fields:
            return user

        fields["updatedAt"] = datetime.now()
        updated = self.storage.update_user(user.id, fields)
        if updated is None:
            raise NotFoundError("User not found")

        if updated.name != user.name or updated.image != user.image:
            count = self.storage.update_author_details(updated.id, updated.name, updated.image)
            if DEBUG:
                print(f"[users] Refreshed author details on {count} ideas for {updated.id}")

        return updated

    # =========================================================================
    # Saved ideas
    # =========================================================================

    def toggle_saved_idea(self, user: User, idea_id: str) -> SaveResult:
        """
        Raises:
            NotFoundError: If the idea does not exist.
        """
        if self.storage.get_idea(idea_id) is None:
            raise NotFoundError("Idea not found")
        result = self.storage.toggle_saved_idea(user.id, idea_id)
        if result is None:
            raise NotFoundError("User not found")
        return result

    def saved_ideas(self, user: User) -> List[Idea]:
        """Saved ideas that still exist, in the order they were saved."""
        current = self.get_user(user.id)
        return self.storage.get_ideas_by_ids(current.saved_ideas)
