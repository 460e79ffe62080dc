"""
User data model for Idea Platform.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import re

from src.models.idea import new_id, _parse_datetime, _iso


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str) -> str:
    """Emails are unique case-insensitively; store them trimmed and lower-cased."""
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_PATTERN.match(email or ""))


@dataclass
class User:
    """
    A registered user.

    Attributes:
        name: Display name (copied onto ideas, comments and evaluations).
        email: Unique, lower-cased login email.
        password_hash: werkzeug password hash; never serialized by to_dict().
        role: "user" or "admin".
        image: Profile image URL.
        bio: Free-text profile bio.
        expertise: Self-declared areas of expertise.
        interests: Self-declared interests.
        followers: Ids of users following this user.
        following: Ids of users this user follows.
        saved_ideas: Ids of ideas this user bookmarked.
    """
    name: str
    email: str
    password_hash: str

    id: str = field(default_factory=new_id)
    role: str = Role.USER.value
    image: Optional[str] = None
    bio: Optional[str] = None
    expertise: List[str] = field(default_factory=list)
    interests: List[str] = field(default_factory=list)
    followers: List[str] = field(default_factory=list)
    following: List[str] = field(default_factory=list)
    saved_ideas: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if isinstance(self.role, Role):
            self.role = self.role.value
        self.email = normalize_email(self.email)
        self.validate()

    def validate(self) -> None:
        """
        Raises:
            ValueError: If validation fails.
        """
        errors = []

        if not self.name or not self.name.strip():
            errors.append("name is required and cannot be empty")

        if not is_valid_email(self.email):
            errors.append(f"email is not a valid address: {self.email!r}")

        if not self.password_hash:
            errors.append("password_hash is required")

        if self.role not in (Role.USER.value, Role.ADMIN.value):
            errors.append(f"role must be 'user' or 'admin', got {self.role!r}")

        if errors:
            raise ValueError(f"User validation failed: {'; '.join(errors)}")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def to_document(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "name": self.name,
            "email": self.email,
            "password": self.password_hash,
            "role": self.role,
            "image": self.image,
            "bio": self.bio,
            "expertise": list(self.expertise),
            "interests": list(self.interests),
            "followers": list(self.followers),
            "following": list(self.following),
            "savedIdeas": list(self.saved_ideas),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Profile for API responses (password hash removed)."""
        data = self.to_document()
        data["id"] = data.pop("_id")
        data.pop("password")
        data["createdAt"] = _iso(self.created_at)
        data["updatedAt"] = _iso(self.updated_at)
        return data

    def to_public_dict(self) -> Dict[str, Any]:
        """Profile as shown to other users (no email, no bookmarks)."""
        data = self.to_dict()
        data.pop("email")
        data.pop("savedIdeas")
        return data

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "User":
        return cls(
            id=str(doc.get("_id") or doc.get("id") or new_id()),
            name=doc.get("name", ""),
            email=doc.get("email", ""),
            password_hash=doc.get("password", ""),
            role=doc.get("role") or Role.USER.value,
            image=doc.get("image"),
            bio=doc.get("bio"),
            expertise=list(doc.get("expertise") or []),
            interests=list(doc.get("interests") or []),
            followers=list(doc.get("followers") or []),
            following=list(doc.get("following") or []),
            saved_ideas=list(doc.get("savedIdeas") or []),
            created_at=_parse_datetime(doc.get("createdAt")) or datetime.now(),
            updated_at=_parse_datetime(doc.get("updatedAt")) or datetime.now(),
        )

    def __repr__(self) -> str:
        return f"User(id={self.id!r}, name={self.name!r}, role={self.role!r})"
