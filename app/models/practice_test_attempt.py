# app/models/practice_test_attempt.py
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.sql import func

from app.core.database import Base, JSONType


class PracticeTestAttempt(Base):
    """
    One sitting of a multi-module practice test.
    Child quiz attempts point back here through quiz_attempts.practice_test_attempt_id.
    """

    __tablename__ = "practice_test_attempts"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    enrollment_id = Column(
        Integer, ForeignKey("enrollments.id"), nullable=True, index=True
    )

    section_ids = Column(JSONType, nullable=False, default=list)
    snapshot_ids = Column(JSONType, nullable=False, default=list)

    overall_score = Column(Float, nullable=False, default=0)
    overall_total_points = Column(Float, nullable=False, default=0)
    status = Column(
        String(20), nullable=False, default="in-progress", index=True
    )  # in-progress, partially-graded, submitted, graded
    attempt_number = Column(Integer, nullable=False, default=1)

    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)

    # Resume pointer
    last_active_quiz_module_id = Column(Integer, nullable=True)
    last_active_quiz_attempt_id = Column(Integer, nullable=True)

    # {"raw_rw", "raw_math", "reading_writing_scaled", "math_scaled", "total"}
    sat_score_details = Column(JSONType, nullable=True)
    # [{"id": section_id, "score": raw_correct}]
    section_scores = Column(JSONType, nullable=False, default=list)

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
        return f"<PracticeTestAttempt(id={self.id}, user_id={self.user_id}, course_id={self.course_id}, status='{self.status}')>"
