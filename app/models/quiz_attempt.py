# app/models/quiz_attempt.py
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.sql import func

from app.core.database import Base, JSONType

STATUS_IN_PROGRESS = "in-progress"
STATUS_SUBMITTED = "submitted"
STATUS_PARTIALLY_GRADED = "partially-graded"
STATUS_GRADED = "graded"

# Statuses a student may resume
RESUMABLE_STATUSES = (STATUS_IN_PROGRESS, STATUS_PARTIALLY_GRADED)
# Statuses that reject further answers
FINALIZED_STATUSES = (STATUS_SUBMITTED, STATUS_GRADED)


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False, index=True)
    enrollment_id = Column(
        Integer, ForeignKey("enrollments.id"), nullable=True, index=True
    )
    practice_test_attempt_id = Column(
        Integer, ForeignKey("practice_test_attempts.id"), nullable=True, index=True
    )
    snapshot_id = Column(
        Integer, ForeignKey("quiz_snapshots.id"), nullable=False, index=True
    )

    # Attempt data
    shuffled_question_order = Column(
        JSONType, nullable=False, default=list
    )  # question ids in the order shown to the student
    questions_attempted_details = Column(
        JSONType, nullable=False, default=list
    )  # one detail record per snapshot question
    annotations = Column(
        JSONType, nullable=False, default=dict
    )  # {question_id: {area: {serialized, notes, snippets}}}

    # Time tracking; start_time is null while the clock is paused
    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    remaining_time = Column(Integer, nullable=True)  # seconds

    # Result
    score = Column(Float, nullable=False, default=0)
    total_points_possible = Column(Float, nullable=False, default=0)
    passed = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=STATUS_IN_PROGRESS, index=True)
    last_active_question_index = Column(Integer, nullable=False, default=0)
    is_auto_submitted = Column(Boolean, nullable=False, default=False)

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

    @property
    def is_finalized(self) -> bool:
        return self.status in FINALIZED_STATUSES

    @property
    def needs_manual_review(self) -> bool:
        return any(
            d.get("requires_manual_review") and not d.get("is_manually_graded")
            for d in self.questions_attempted_details or []
        )

    def __repr__(self):
        return f"<QuizAttempt(id={self.id}, user_id={self.user_id}, module_id={self.module_id}, status='{self.status}')>"
