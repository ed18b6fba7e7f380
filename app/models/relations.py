# app/models/relations.py

from sqlalchemy.orm import relationship

# Import all relevant models
from .course import Course
from .course_enrollment import Enrollment
from .module import Module, QuizModule
from .practice_test_attempt import PracticeTestAttempt
from .quiz_attempt import QuizAttempt
from .quiz_snapshot import QuestionSnapshot
from .section import Section
from .user import User


def setup_relationships():
    """
    Configure all SQLAlchemy relationships between models.
    """

    # --- Course graph ---

    # 1. Course to Sections (One-to-Many), in course order
    Course.sections = relationship(
        "Section",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="Section.position",
    )
    Section.course = relationship("Course", back_populates="sections")

    # 2. Section to Modules (One-to-Many, polymorphic)
    Section.modules = relationship(
        "Module",
        back_populates="section",
        cascade="all, delete-orphan",
        order_by="Module.position",
    )
    Module.section = relationship("Section", back_populates="modules")

    # --- Snapshots ---

    QuizModule.snapshots = relationship(
        "QuestionSnapshot",
        back_populates="module",
        order_by="QuestionSnapshot.version",
    )
    QuestionSnapshot.module = relationship("QuizModule", back_populates="snapshots")

    # --- Enrollment ---

    # 3. User / Course to Enrollments
    User.enrollments = relationship("Enrollment", back_populates="user")
    Enrollment.user = relationship("User", back_populates="enrollments")
    Course.enrollments = relationship("Enrollment", back_populates="course")
    Enrollment.course = relationship("Course", back_populates="enrollments")

    # 4. Enrollment to its attempts (One-to-Many)
    Enrollment.quiz_attempts = relationship(
        "QuizAttempt",
        back_populates="enrollment",
        order_by="QuizAttempt.created_at",
    )
    QuizAttempt.enrollment = relationship("Enrollment", back_populates="quiz_attempts")

    Enrollment.practice_test_attempts = relationship(
        "PracticeTestAttempt",
        back_populates="enrollment",
        order_by="PracticeTestAttempt.attempt_number",
    )
    PracticeTestAttempt.enrollment = relationship(
        "Enrollment", back_populates="practice_test_attempts"
    )

    # --- Attempts ---

    # 5. Practice test to child quiz attempts (One-to-Many)
    PracticeTestAttempt.quiz_attempts = relationship(
        "QuizAttempt",
        back_populates="practice_test_attempt",
        order_by="QuizAttempt.id",
    )
    QuizAttempt.practice_test_attempt = relationship(
        "PracticeTestAttempt", back_populates="quiz_attempts"
    )
    PracticeTestAttempt.course = relationship("Course")
    PracticeTestAttempt.user = relationship("User")

    # 6. Quiz attempt lookups
    QuizAttempt.user = relationship("User")
    QuizAttempt.module = relationship("QuizModule")
    QuizAttempt.snapshot = relationship("QuestionSnapshot")
