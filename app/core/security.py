# core/security.py
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, FrozenSet, Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt

from app.core.config import settings
from app.models.user import User

logger = logging.getLogger(__name__)


# Capabilities checked by the grading services
READ_ALL_ATTEMPTS = "quiz_attempt:read:all"
GRADE_ATTEMPTS = "quiz_attempt:grade"
DELETE_ATTEMPTS = "quiz_attempt:delete"
READ_ALL_PRACTICE_TESTS = "practice_test:read:all"
MANAGE_ENROLLMENTS = "enrollment:manage"

ROLE_CAPABILITIES: Dict[str, FrozenSet[str]] = {
    "student": frozenset(),
    "teacher": frozenset(
        {READ_ALL_ATTEMPTS, GRADE_ATTEMPTS, READ_ALL_PRACTICE_TESTS}
    ),
    "admin": frozenset(
        {
            READ_ALL_ATTEMPTS,
            GRADE_ATTEMPTS,
            DELETE_ATTEMPTS,
            READ_ALL_PRACTICE_TESTS,
            MANAGE_ENROLLMENTS,
        }
    ),
}


@dataclass(frozen=True)
class Principal:
    """The authenticated caller plus the capabilities resolved for this request."""

    user: User
    capabilities: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def id(self) -> int:
        return self.user.id

    def can(self, capability: str) -> bool:
        return capability in self.capabilities

    def owns_or_can(self, owner_id: int, capability: str) -> bool:
        return owner_id == self.user.id or self.can(capability)


def resolve_capabilities(user: User) -> FrozenSet[str]:
    """Role defaults plus any permissions granted directly to the user."""
    granted = ROLE_CAPABILITIES.get(user.role, frozenset())
    return granted | frozenset(user.permissions or [])


class JWTManager:
    """JWT token management for authentication"""

    def __init__(self):
        self.secret_key = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.user_token_expire = timedelta(days=settings.jwt_user_expiration)
        self.issuer = settings.jwt_issuer

    def create_access_token(
        self,
        user: User,
        custom_expiration: Optional[timedelta] = None,
    ) -> str:
        """
        Create JWT access token for user

        Args:
            user: User model instance
            custom_expiration: Override default expiration

        Returns:
            JWT access token string
        """
        current_time = datetime.utcnow()
        expire = current_time + (custom_expiration or self.user_token_expire)

        payload = {
            "sub": str(user.id),
            "user_id": user.id,
            "role": user.role,
            "email": user.email,
            "exp": int(expire.timestamp()),
            "iat": int(current_time.timestamp()),
            "iss": self.issuer,
            "type": "access",
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Verify and decode JWT token
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": True},
            )
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        # Verify token type (check 'type' field, not 'role')
        if payload.get("type") != token_type:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token type. Expected {token_type}",
            )

        if payload.get("iss") != self.issuer:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token issuer",
            )

        return payload


jwt_manager = JWTManager()
