# app/services/course_enrollment.py
import copy
import logging
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.core.database import atomic
from app.core.decorator import db_exception
from app.core.exceptions import InvalidStateError, NotFoundError, UnauthorizedError
from app.core.security import MANAGE_ENROLLMENTS, Principal
from app.models.course import Course
from app.models.course_enrollment import Enrollment
from app.models.module import LessonModule, Module, QuizModule
from app.models.practice_test_attempt import PracticeTestAttempt
from app.models.quiz_attempt import QuizAttempt
from app.schemas.course_enrollment import MarkProgressRequest
from app.utils.time import get_utc_now

logger = logging.getLogger(__name__)

STATUS_ENROLLED = "enrolled"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
STATUS_DROPPED = "dropped"


def calculate_overall_progress(db: Session, enrollment: Enrollment) -> int:
    """
    Completion percentage of an enrollment over its course graph.

    Every lesson content item is one unit, every quiz module is one unit.
    """
    course = db.query(Course).filter(Course.id == enrollment.course_id).first()
    if not course or not course.sections:
        return 0

    completed_modules = enrollment.completed_module_ids
    completed_contents = set(enrollment.completed_content_ids or [])

    total = 0
    done = 0
    for section in course.sections:
        for module in section.modules:
            if isinstance(module, LessonModule):
                content_ids = [content.id for content in module.contents]
                total += len(content_ids)
                done += sum(1 for cid in content_ids if cid in completed_contents)
            elif isinstance(module, QuizModule):
                total += 1
                if module.id in completed_modules:
                    done += 1

    if total == 0:
        return 0
    return min(100, round(100 * done / total))


def touch(enrollment: Enrollment, module_id: Optional[int] = None) -> None:
    enrollment.last_accessed_at = get_utc_now()
    if module_id is not None:
        enrollment.last_active_module_id = module_id


def mark_in_progress(enrollment: Enrollment) -> None:
    if enrollment.status == STATUS_ENROLLED:
        enrollment.status = STATUS_IN_PROGRESS


def add_completed_module(enrollment: Enrollment, module_id: int) -> bool:
    """Append module_id to completed_modules; False when already there."""
    if module_id in enrollment.completed_module_ids:
        return False
    completed = copy.deepcopy(enrollment.completed_modules or [])
    completed.append(
        {"module_id": module_id, "completion_date": get_utc_now().isoformat()}
    )
    enrollment.completed_modules = completed
    return True


def refresh_progress(db: Session, enrollment: Enrollment) -> int:
    progress = calculate_overall_progress(db, enrollment)
    enrollment.progress_percentage = progress
    if progress >= 100:
        enrollment.status = STATUS_COMPLETED
        enrollment.completed_at = enrollment.completed_at or get_utc_now()
    return progress


def record_quiz_points(enrollment: Enrollment, earned: float, possible: float) -> None:
    """Accumulate a finished quiz into the enrollment's running grade."""
    enrollment.quiz_points_earned = (enrollment.quiz_points_earned or 0) + earned
    enrollment.quiz_points_possible = (enrollment.quiz_points_possible or 0) + possible
    enrollment.grade = (
        enrollment.quiz_points_earned / enrollment.quiz_points_possible * 100
        if enrollment.quiz_points_possible > 0
        else 0
    )


def complete_quiz_module(
    db: Session, enrollment: Enrollment, module_id: int, passed: bool
) -> None:
    """Mark a passed quiz module complete and recompute progress."""
    if not passed:
        logger.info(
            f"Quiz module {module_id} not passed, enrollment {enrollment.id} progress unchanged"
        )
        return
    if not add_completed_module(enrollment, module_id):
        return
    progress = refresh_progress(db, enrollment)
    logger.info(
        f"Enrollment {enrollment.id} completed module {module_id}, progress {progress}%"
    )


class EnrollmentService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, enrollment_id: int) -> Enrollment:
        enrollment = (
            self.db.query(Enrollment).filter(Enrollment.id == enrollment_id).first()
        )
        if not enrollment:
            raise NotFoundError("Enrollment not found")
        return enrollment

    def get_owned(self, enrollment_id: int, principal: Principal) -> Enrollment:
        enrollment = self.get_by_id(enrollment_id)
        if not principal.owns_or_can(enrollment.user_id, MANAGE_ENROLLMENTS):
            raise UnauthorizedError("You do not have access to this enrollment")
        return enrollment

    def find(self, user_id: int, course_id: int) -> Optional[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(
                and_(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
            )
            .first()
        )

    def get_enrollment(self, user_id: int, course_id: int) -> Optional[Enrollment]:
        return self.find(user_id, course_id)

    @db_exception
    def enroll(self, user_id: int, course_id: int) -> Enrollment:
        """Enroll the user, returning the existing enrollment if there is one."""
        course = self.db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise NotFoundError("Course not found")

        existing = self.find(user_id, course_id)
        if existing:
            return existing

        with atomic(self.db):
            enrollment = Enrollment(
                user_id=user_id,
                course_id=course_id,
                status=STATUS_ENROLLED,
                progress_percentage=0,
                completed_modules=[],
                completed_content_ids=[],
                quiz_points_earned=0,
                quiz_points_possible=0,
                last_accessed_at=get_utc_now(),
            )
            self.db.add(enrollment)

        self.db.refresh(enrollment)
        logger.info(f"User {user_id} enrolled in course {course_id}")
        return enrollment

    def mark_progress(self, user_id: int, payload: MarkProgressRequest) -> Enrollment:
        enrollment = self.find(user_id, payload.course_id)
        if not enrollment:
            raise NotFoundError("Enrollment not found")

        with atomic(self.db):
            changed = False

            if payload.status_update == "content_viewed":
                if payload.content_id is not None:
                    content_ids = list(enrollment.completed_content_ids or [])
                    if payload.content_id not in content_ids:
                        content_ids.append(payload.content_id)
                        enrollment.completed_content_ids = content_ids
                        changed = True

            elif payload.status_update == "quiz_completed":
                if payload.module_id in enrollment.completed_module_ids:
                    changed = True
                else:
                    attempt = (
                        self.db.query(QuizAttempt)
                        .filter(QuizAttempt.id == payload.quiz_attempt_id)
                        .first()
                    )
                    if not attempt or attempt.user_id != user_id or not attempt.passed:
                        raise InvalidStateError(
                            "Quiz must be passed to mark module as complete"
                        )
                    changed = add_completed_module(enrollment, payload.module_id)

            elif payload.status_update == "module_completed":
                if payload.module_id not in enrollment.completed_module_ids:
                    module = (
                        self.db.query(Module)
                        .filter(Module.id == payload.module_id)
                        .first()
                    )
                    if not isinstance(module, LessonModule):
                        raise InvalidStateError("Invalid module or module type")
                    content_ids = {content.id for content in module.contents}
                    done = content_ids & set(enrollment.completed_content_ids or [])
                    if not content_ids or done != content_ids:
                        raise InvalidStateError(
                            "Not all content in this lesson module has been completed"
                        )
                    changed = add_completed_module(enrollment, module.id)

            if changed:
                mark_in_progress(enrollment)
                touch(enrollment, payload.module_id)
                refresh_progress(self.db, enrollment)

        self.db.refresh(enrollment)
        return enrollment

    def reset_progress(self, user_id: int, course_id: int) -> Enrollment:
        enrollment = self.find(user_id, course_id)
        if not enrollment:
            raise NotFoundError("Enrollment not found")

        with atomic(self.db):
            enrollment.completed_modules = []
            enrollment.completed_content_ids = []
            enrollment.progress_percentage = 0
            enrollment.grade = None
            enrollment.quiz_points_earned = 0
            enrollment.quiz_points_possible = 0
            enrollment.completed_at = None
            enrollment.status = STATUS_ENROLLED
            practice_test_ids = [
                row.id
                for row in self.db.query(PracticeTestAttempt.id).filter(
                    and_(
                        PracticeTestAttempt.user_id == user_id,
                        PracticeTestAttempt.course_id == course_id,
                    )
                )
            ]
            deleted = (
                self.db.query(QuizAttempt)
                .filter(
                    and_(
                        QuizAttempt.user_id == user_id,
                        or_(
                            QuizAttempt.enrollment_id == enrollment.id,
                            QuizAttempt.practice_test_attempt_id.in_(practice_test_ids),
                        ),
                    )
                )
                .delete(synchronize_session=False)
            )
            if practice_test_ids:
                self.db.query(PracticeTestAttempt).filter(
                    PracticeTestAttempt.id.in_(practice_test_ids)
                ).delete(synchronize_session=False)

        logger.info(
            f"Reset progress on enrollment {enrollment.id}, removed {deleted} quiz attempts "
            f"and {len(practice_test_ids)} practice tests"
        )
        self.db.refresh(enrollment)
        return enrollment

    def recalculate_course_progress(self, course_id: int) -> List[Enrollment]:
        """Re-derive progress for every enrollment of a course after it changed."""
        enrollments = (
            self.db.query(Enrollment).filter(Enrollment.course_id == course_id).all()
        )
        changed = []
        with atomic(self.db):
            for enrollment in enrollments:
                progress = calculate_overall_progress(self.db, enrollment)
                if progress == enrollment.progress_percentage:
                    continue
                enrollment.progress_percentage = progress
                if progress < 100 and enrollment.status == STATUS_COMPLETED:
                    enrollment.status = STATUS_IN_PROGRESS
                    enrollment.completed_at = None
                elif progress >= 100 and enrollment.status == STATUS_IN_PROGRESS:
                    enrollment.status = STATUS_COMPLETED
                    enrollment.completed_at = get_utc_now()
                changed.append(enrollment)

        logger.info(
            f"Recalculated progress for course {course_id}: {len(changed)} of "
            f"{len(enrollments)} enrollments changed"
        )
        return enrollments
