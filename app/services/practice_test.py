# app/services/practice_test.py
import logging
import random
from collections import defaultdict
from typing import List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import atomic
from app.core.decorator import db_exception
from app.core.exceptions import (
    AlreadyFinalizedError,
    DataIntegrityError,
    InvalidStateError,
    NoGradableQuestionsError,
    NotFoundError,
    UnauthorizedError,
)
from app.core.security import READ_ALL_PRACTICE_TESTS, Principal
from app.models.course import Course
from app.models.course_enrollment import Enrollment
from app.models.module import QuizModule
from app.models.practice_test_attempt import PracticeTestAttempt
from app.models.quiz_attempt import (
    FINALIZED_STATUSES,
    RESUMABLE_STATUSES,
    STATUS_GRADED,
    STATUS_IN_PROGRESS,
    STATUS_PARTIALLY_GRADED,
    STATUS_SUBMITTED,
)
from app.models.section import SCORE_GROUP_MATH, SCORE_GROUP_READING_WRITING, Section
from app.schemas.practice_test import SaveProgressRequest
from app.services import course_enrollment
from app.services.snapshot_builder import SnapshotBuilder, link_points
from app.utils.scaled_score import ScaledScoreResult, convert, lookup_scaled_score
from app.utils.sat_conversion import SAT_CONVERSION_TABLE
from app.utils.time import get_utc_now

logger = logging.getLogger(__name__)


def quiz_modules_of(course: Course) -> List[Tuple[Section, QuizModule]]:
    """Every quiz module in the course, in section then module order."""
    return [
        (section, module)
        for section in course.sections
        for module in section.modules
        if isinstance(module, QuizModule)
    ]


def max_points(modules: List[QuizModule]) -> int:
    """Live point total over standard and strand questions."""
    return sum(
        link_points(link) for module in modules for link in module.all_question_links
    )


def raw_correct_count(details: List[dict]) -> int:
    return sum(1 for d in details or [] if (d.get("points_awarded") or 0) > 0)


class PracticeTestService:
    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.snapshots = SnapshotBuilder(db, rng)

    def _get(self, attempt_id: int) -> PracticeTestAttempt:
        attempt = (
            self.db.query(PracticeTestAttempt)
            .filter(PracticeTestAttempt.id == attempt_id)
            .first()
        )
        if not attempt:
            raise NotFoundError("Practice test attempt not found")
        return attempt

    def _owned(self, attempt_id: int, user_id: int) -> PracticeTestAttempt:
        attempt = self._get(attempt_id)
        if attempt.user_id != user_id:
            raise UnauthorizedError("You do not own this practice test attempt")
        return attempt

    def _enrollment(self, user_id: int, course_id: int) -> Optional[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(
                and_(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
            )
            .first()
        )

    @db_exception
    def start(self, user_id: int, section_id: int) -> PracticeTestAttempt:
        """
        Start or resume the user's practice test for the course owning
        ``section_id``, snapshotting every quiz module on first start.
        """
        section = self.db.query(Section).filter(Section.id == section_id).first()
        if not section or not section.course or not section.course.is_practice_test:
            raise NotFoundError(
                "Section not found or is not part of a practice test course"
            )
        course = section.course

        quiz_modules = quiz_modules_of(course)
        if not quiz_modules:
            raise InvalidStateError("The course sections do not contain any quiz modules")

        attempt = (
            self.db.query(PracticeTestAttempt)
            .filter(
                and_(
                    PracticeTestAttempt.user_id == user_id,
                    PracticeTestAttempt.course_id == course.id,
                    PracticeTestAttempt.status.in_(RESUMABLE_STATUSES),
                )
            )
            .order_by(PracticeTestAttempt.created_at.desc(), PracticeTestAttempt.id.desc())
            .first()
        )
        enrollment = self._enrollment(user_id, course.id)

        with atomic(self.db):
            if attempt is None:
                previous = (
                    self.db.query(PracticeTestAttempt)
                    .filter(
                        and_(
                            PracticeTestAttempt.user_id == user_id,
                            PracticeTestAttempt.course_id == course.id,
                        )
                    )
                    .count()
                )
                section_ids = []
                for quiz_section, _ in quiz_modules:
                    if quiz_section.id not in section_ids:
                        section_ids.append(quiz_section.id)

                attempt = PracticeTestAttempt(
                    user_id=user_id,
                    course_id=course.id,
                    section_ids=section_ids,
                    snapshot_ids=[],
                    overall_score=0,
                    overall_total_points=max_points([m for _, m in quiz_modules]),
                    status=STATUS_IN_PROGRESS,
                    attempt_number=previous + 1,
                    start_time=get_utc_now(),
                    section_scores=[],
                )
                self.db.add(attempt)
                self.db.flush()
                logger.info(
                    f"Created practice test attempt {attempt.id} "
                    f"(#{attempt.attempt_number}) for user {user_id} on course {course.id}"
                )

            if not attempt.snapshot_ids:
                snapshot_ids = []
                for _, module in quiz_modules:
                    try:
                        snapshot = self.snapshots.ensure_snapshot(module, rebuild=True)
                    except NoGradableQuestionsError as e:
                        logger.warning(f"Skipping module {module.id}: {e.message}")
                        continue
                    snapshot_ids.append(snapshot.id)
                if not snapshot_ids:
                    raise DataIntegrityError(
                        "No valid quiz modules could be snapshotted. Check module question links."
                    )
                attempt.snapshot_ids = snapshot_ids

            if enrollment is not None:
                attempt.enrollment_id = enrollment.id
                course_enrollment.mark_in_progress(enrollment)
                course_enrollment.touch(enrollment)

        self.db.refresh(attempt)
        return attempt

    def save_progress(
        self, attempt_id: int, user_id: int, payload: SaveProgressRequest
    ) -> Tuple[PracticeTestAttempt, str]:
        attempt = self._owned(attempt_id, user_id)
        if attempt.status in FINALIZED_STATUSES:
            return (
                attempt,
                "Practice test is already submitted/graded. Progress update skipped.",
            )

        with atomic(self.db):
            if payload.last_active_quiz_module_id is not None:
                attempt.last_active_quiz_module_id = payload.last_active_quiz_module_id
            if payload.last_active_quiz_attempt_id is not None:
                attempt.last_active_quiz_attempt_id = payload.last_active_quiz_attempt_id
            if attempt.status != STATUS_PARTIALLY_GRADED:
                attempt.status = STATUS_IN_PROGRESS

            enrollment = attempt.enrollment
            if enrollment is not None:
                course_enrollment.mark_in_progress(enrollment)
                course_enrollment.touch(enrollment)

        self.db.refresh(attempt)
        return attempt, "Practice test progress saved successfully."

    def score(self, attempt: PracticeTestAttempt, course: Course) -> dict:
        """
        Raw correct counts per section and group, converted to scaled scores.
        Sections without a score group are counted but not scored.
        """
        floor = settings.sat_floor_score
        module_sections = {}
        for section in course.sections:
            for module in section.modules:
                module_sections[module.id] = section

        raw_by_section = defaultdict(int)
        for child in attempt.quiz_attempts:
            section = module_sections.get(child.module_id)
            if section is None:
                logger.warning(
                    f"Quiz attempt {child.id} belongs to no section of course {course.id}"
                )
                continue
            raw_by_section[section.id] += raw_correct_count(
                child.questions_attempted_details
            )

        raw_by_group = defaultdict(int)
        section_scores = []
        for section in course.sections:
            if not section.score_group:
                continue
            raw = raw_by_section.get(section.id, 0)
            raw_by_group[section.score_group] += raw
            section_scores.append(
                {
                    "id": section.id,
                    "raw_score": raw,
                    "score": lookup_scaled_score(
                        SAT_CONVERSION_TABLE, raw, section.score_group, floor
                    ),
                }
            )

        result: ScaledScoreResult = convert(
            raw_by_group[SCORE_GROUP_READING_WRITING],
            raw_by_group[SCORE_GROUP_MATH],
            SAT_CONVERSION_TABLE,
            floor,
        )
        return {
            "result": result,
            "section_scores": section_scores,
            "overall_total_points": max_points([m for _, m in quiz_modules_of(course)]),
        }

    def submit(self, attempt_id: int, user_id: int) -> PracticeTestAttempt:
        attempt = self._owned(attempt_id, user_id)
        if attempt.status == STATUS_GRADED:
            raise AlreadyFinalizedError("This practice test has already been graded")

        course = attempt.course
        if course is None:
            raise DataIntegrityError(
                f"Course {attempt.course_id} for practice test attempt {attempt.id} is missing"
            )
        scored = self.score(attempt, course)
        result: ScaledScoreResult = scored["result"]

        with atomic(self.db):
            attempt.overall_score = result.total
            attempt.overall_total_points = scored["overall_total_points"]
            attempt.section_scores = scored["section_scores"]
            attempt.sat_score_details = result.as_details()
            attempt.end_time = get_utc_now()
            attempt.status = STATUS_GRADED
            attempt.last_active_quiz_module_id = None
            attempt.last_active_quiz_attempt_id = None

            enrollment = attempt.enrollment or self._enrollment(user_id, course.id)
            if enrollment is not None:
                enrollment.grade = result.total
                enrollment.status = course_enrollment.STATUS_COMPLETED
                enrollment.progress_percentage = 100
                enrollment.completed_at = get_utc_now()
                course_enrollment.touch(enrollment)

        self.db.refresh(attempt)
        logger.info(
            f"Practice test attempt {attempt.id} graded: RW {result.rw_raw}->{result.rw_scaled}, "
            f"Math {result.math_raw}->{result.math_scaled}, total {result.total}"
        )
        return attempt

    def list_course_attempts(
        self, course_id: int, status: Optional[str] = None
    ) -> List[dict]:
        query = self.db.query(PracticeTestAttempt).filter(
            PracticeTestAttempt.course_id == course_id
        )
        if status == "graded":
            query = query.filter(
                PracticeTestAttempt.status.in_(
                    (STATUS_SUBMITTED, STATUS_GRADED, STATUS_PARTIALLY_GRADED)
                )
            )
        elif status:
            query = query.filter(PracticeTestAttempt.status == status)

        rows = []
        for attempt in query.order_by(
            PracticeTestAttempt.created_at.desc(), PracticeTestAttempt.id.desc()
        ):
            display_status = attempt.status
            if display_status in FINALIZED_STATUSES and any(
                child.status == STATUS_PARTIALLY_GRADED for child in attempt.quiz_attempts
            ):
                display_status = STATUS_PARTIALLY_GRADED
            rows.append(
                {
                    "id": attempt.id,
                    "user_id": attempt.user_id,
                    "user_name": attempt.user.full_name if attempt.user else None,
                    "attempt_number": attempt.attempt_number,
                    "status": display_status,
                    "overall_score": attempt.overall_score,
                    "overall_total_points": attempt.overall_total_points,
                    "sat_score_details": attempt.sat_score_details,
                    "section_scores": attempt.section_scores or [],
                    "created_at": attempt.created_at,
                }
            )
        return rows

    def get_attempt_details(
        self, attempt_id: int, principal: Principal
    ) -> PracticeTestAttempt:
        attempt = self._get(attempt_id)
        if not principal.owns_or_can(attempt.user_id, READ_ALL_PRACTICE_TESTS):
            raise UnauthorizedError("You do not have access to this practice test attempt")
        return attempt

    def section_refs(self, attempt: PracticeTestAttempt) -> List[dict]:
        sections = (
            self.db.query(Section)
            .filter(Section.id.in_(attempt.section_ids or []))
            .order_by(Section.position)
            .all()
        )
        return [{"id": section.id, "title": section.title} for section in sections]
