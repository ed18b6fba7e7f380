from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from app.core.config import settings
from app.core.database import Base, JSONType


class User(Base):
    """
    Minimal view of the platform's users.
    Accounts and roles are administered elsewhere; the grading engine only
    needs identity, role and any directly granted permissions.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    full_name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=True)

    # Account status
    is_active = Column(Boolean, default=True, nullable=False)
    role = Column(
        String(20), default=settings.authorization_default_role, nullable=False
    )  # student, teacher, admin
    permissions = Column(
        JSONType, nullable=False, default=list
    )  # Extra capability strings, e.g. ["quiz_attempt:grade"]

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<User(id={self.id}, role='{self.role}', name='{self.full_name}')>"
