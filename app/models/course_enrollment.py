# app/models/course_enrollment.py
from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from app.core.database import Base, JSONType


class Enrollment(Base):
    """
    Tracks a user's enrollment in a course.
    progress_percentage is always derived from completed_modules and
    completed_content_ids; never set it by hand.
    """

    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("user_id", "course_id"),)

    id = Column(Integer, primary_key=True, index=True)

    # User and Course relationship
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)

    status = Column(
        String(20), nullable=False, default="enrolled"
    )  # enrolled, in-progress, completed, dropped

    # Progress tracking
    progress_percentage = Column(Integer, nullable=False, default=0)
    grade = Column(Float, nullable=True)
    completed_modules = Column(
        JSONType, nullable=False, default=list
    )  # [{"module_id": 3, "completion_date": "..."}]
    completed_content_ids = Column(JSONType, nullable=False, default=list)
    quiz_points_earned = Column(Float, nullable=False, default=0)
    quiz_points_possible = Column(Float, nullable=False, default=0)
    last_active_module_id = Column(Integer, nullable=True)

    # Timestamps
    enrolled_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def completed_module_ids(self) -> set:
        return {entry.get("module_id") for entry in self.completed_modules or []}

    def __repr__(self):
        return f"<Enrollment(id={self.id}, user_id={self.user_id}, course_id={self.course_id}, status='{self.status}')>"
