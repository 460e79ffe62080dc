"""
Authentication helpers for Idea Platform.

- Passwords are hashed with werkzeug.security.
- Bearer tokens are itsdangerous URL-safe timed signatures of {"id": user_id}.
"""

from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from src.config import SECRET_KEY, TOKEN_MAX_AGE_DAYS
from src.services.errors import AuthenticationError


TOKEN_SALT = "idea-platform-auth"

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    if not password_hash or not password:
        return False
    return check_password_hash(password_hash, password)


class TokenSigner:
    """
    Issues and verifies bearer tokens.

    Args:
        secret_key: Signing key. Defaults to config.SECRET_KEY.
        max_age_days: Token lifetime. Defaults to config.TOKEN_MAX_AGE_DAYS.
    """

    def __init__(self, secret_key: Optional[str] = None, max_age_days: Optional[int] = None):
        self.secret_key = secret_key if secret_key is not None else SECRET_KEY
        self.max_age_days = max_age_days if max_age_days is not None else TOKEN_MAX_AGE_DAYS
        self._serializer = URLSafeTimedSerializer(self.secret_key, salt=TOKEN_SALT)

    @property
    def max_age_seconds(self) -> int:
        return self.max_age_days * 24 * 60 * 60

    def issue(self, user_id: str) -> str:
        return self._serializer.dumps({"id": user_id})

    def verify(self, token: Optional[str]) -> str:
        """
        Verify a token and return the user id it was issued for.

        Raises:
            AuthenticationError: If the token is missing, tampered with or expired.
        """
        if not token:
            raise AuthenticationError("Authentication required")

        try:
            payload = self._serializer.loads(token, max_age=self.max_age_seconds)
        except SignatureExpired:
            raise AuthenticationError("Token has expired")
        except BadSignature:
            raise AuthenticationError("Invalid token")

        user_id = payload.get("id") if isinstance(payload, dict) else None
        if not user_id:
            raise AuthenticationError("Invalid token")
        return user_id


def parse_bearer(header_value: Optional[str]) -> Optional[str]:
    """
    Extract the token from an Authorization header.

    Example:
        >>> parse_bearer("Bearer abc.def")
        'abc.def'
    """
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None
