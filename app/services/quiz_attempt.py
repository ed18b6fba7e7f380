# app/services/quiz_attempt.py
import copy
import logging
import random
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from app.core.database import atomic
from app.core.decorator import db_exception
from app.core.exceptions import (
    AlreadyFinalizedError,
    DataIntegrityError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from app.core.security import GRADE_ATTEMPTS, READ_ALL_ATTEMPTS, Principal
from app.models.course_enrollment import Enrollment
from app.models.module import QuizModule
from app.models.practice_test_attempt import PracticeTestAttempt
from app.models.quiz_attempt import (
    FINALIZED_STATUSES,
    RESUMABLE_STATUSES,
    STATUS_GRADED,
    STATUS_IN_PROGRESS,
    STATUS_PARTIALLY_GRADED,
    QuizAttempt,
)
from app.models.quiz_snapshot import QuestionSnapshot
from app.models.section import Section
from app.schemas.quiz_attempt import SaveAnswersRequest, SubmitAttemptRequest
from app.services import course_enrollment
from app.services.snapshot_builder import SnapshotBuilder
from app.utils.answer_checker import (
    check_answer,
    coerce_answer,
    has_answer,
    requires_manual_review,
    stored_answer,
)
from app.utils.time import get_utc_now, make_aware

logger = logging.getLogger(__name__)

STRICT_ZERO_SCORE = "strict-zero-score"


def grade_percentage(score: float, total: float) -> float:
    return (score / total) * 100 if total > 0 else 0


def is_passing(score: float, total: float, passing_percentage: float) -> bool:
    """A zero score never passes, even against a zero threshold."""
    return score > 0 and grade_percentage(score, total) >= passing_percentage


def calculate_results(
    snapshot: QuestionSnapshot,
    user_answers: Dict[str, Any],
    previous_details: Optional[List[dict]] = None,
) -> dict:
    """
    Grade every snapshot question against the submitted answers.

    Answers missing from ``user_answers`` fall back to the last saved value.
    Items held for manual review score zero until a teacher grades them.
    """
    previous = {d.get("question_id"): d for d in previous_details or []}
    score = 0
    total = 0
    needs_review = False
    details = []

    for entry in snapshot.questions or []:
        question_id = entry["question_id"]
        question_type = entry["question_type"]
        points = entry.get("points_possible", 0)
        prior = previous.get(question_id, {})

        key = str(question_id)
        raw = user_answers[key] if key in user_answers else stored_answer(prior)

        is_correct = False
        awarded = 0
        manual = requires_manual_review(question_type, entry)
        if manual:
            needs_review = True
        elif has_answer(raw):
            is_correct = check_answer(question_type, raw, entry)
            awarded = points if is_correct else 0
            score += awarded
        total += points

        text, number, boolean = coerce_answer(question_type, raw)
        details.append(
            {
                "question_id": question_id,
                "question_type": question_type,
                "user_text_answer": text,
                "user_numerical_answer": number,
                "user_boolean_answer": boolean,
                "is_correct": is_correct,
                "points_awarded": awarded,
                "requires_manual_review": manual,
                "is_manually_graded": not manual,
                "teacher_reviewer_id": None,
                "teacher_notes": None,
                "is_marked_for_review": bool(prior.get("is_marked_for_review")),
            }
        )

    passing = (snapshot.settings or {}).get("passing_score_percentage") or 0
    percentage = grade_percentage(score, total)
    return {
        "score": score,
        "total_points_possible": total,
        "grade_percentage": percentage,
        "passed": is_passing(score, total, passing),
        "questions_attempted_details": details,
        "needs_manual_review": needs_review,
    }


def next_quiz_module_id(db: Session, module: QuizModule) -> Optional[int]:
    """The quiz module after ``module`` in section, then module, order."""
    section = module.section
    if section is None:
        return None
    sections = (
        db.query(Section)
        .filter(Section.course_id == section.course_id)
        .order_by(Section.position)
        .all()
    )
    ordered = [
        m.id
        for s in sections
        for m in sorted(s.modules, key=lambda m: m.position)
        if isinstance(m, QuizModule)
    ]
    if module.id not in ordered:
        return None
    index = ordered.index(module.id)
    return ordered[index + 1] if index + 1 < len(ordered) else None


class QuizAttemptService:
    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng or random.Random()
        self.snapshots = SnapshotBuilder(db, self.rng)

    # ---------- lookups ----------

    def _get(self, attempt_id: int) -> QuizAttempt:
        attempt = self.db.query(QuizAttempt).filter(QuizAttempt.id == attempt_id).first()
        if not attempt:
            raise NotFoundError("Quiz attempt not found")
        return attempt

    def _owned(self, attempt_id: int, user_id: int) -> QuizAttempt:
        attempt = self._get(attempt_id)
        if attempt.user_id != user_id:
            raise UnauthorizedError("You do not own this quiz attempt")
        return attempt

    def _quiz_module(self, module_id: int) -> QuizModule:
        module = self.db.query(QuizModule).filter(QuizModule.id == module_id).first()
        if not module:
            raise NotFoundError("Quiz module not found")
        return module

    @staticmethod
    def _snapshot_of(attempt: QuizAttempt) -> QuestionSnapshot:
        if attempt.snapshot is None or not attempt.snapshot.questions:
            raise DataIntegrityError(
                f"Snapshot for quiz attempt {attempt.id} is missing"
            )
        return attempt.snapshot

    def get_attempt(self, attempt_id: int, principal: Principal) -> QuizAttempt:
        attempt = self._get(attempt_id)
        if not principal.owns_or_can(attempt.user_id, READ_ALL_ATTEMPTS):
            raise UnauthorizedError("You do not have access to this quiz attempt")
        return attempt

    # ---------- lifecycle ----------

    @db_exception
    def start(
        self,
        user_id: int,
        module_id: int,
        enrollment_id: int,
        practice_test_attempt_id: Optional[int] = None,
    ) -> QuizAttempt:
        """
        Resume the caller's open attempt on this module, or create a new one
        pinned to the module's current snapshot.
        """
        module = self._quiz_module(module_id)

        enrollment = (
            self.db.query(Enrollment).filter(Enrollment.id == enrollment_id).first()
        )
        if not enrollment:
            raise NotFoundError("Enrollment not found")
        if enrollment.user_id != user_id:
            raise UnauthorizedError("You do not own this enrollment")

        parent = None
        if practice_test_attempt_id is not None:
            parent = (
                self.db.query(PracticeTestAttempt)
                .filter(PracticeTestAttempt.id == practice_test_attempt_id)
                .first()
            )
            if not parent:
                raise NotFoundError("Practice test attempt not found")
            if parent.user_id != user_id:
                raise UnauthorizedError("You do not own this practice test attempt")
            if parent.course_id != enrollment.course_id:
                raise InvalidStateError("Practice test belongs to a different course")
            if parent.status in FINALIZED_STATUSES:
                raise InvalidStateError("Practice test attempt is already graded")

        module_course_id = module.section.course_id if module.section else None
        if module_course_id != enrollment.course_id:
            raise InvalidStateError("Quiz module does not belong to the enrolled course")

        parent_filter = (
            QuizAttempt.practice_test_attempt_id == practice_test_attempt_id
            if practice_test_attempt_id is not None
            else QuizAttempt.practice_test_attempt_id.is_(None)
        )
        existing = (
            self.db.query(QuizAttempt)
            .filter(
                and_(
                    QuizAttempt.user_id == user_id,
                    QuizAttempt.module_id == module_id,
                    parent_filter,
                    QuizAttempt.status.in_(RESUMABLE_STATUSES),
                )
            )
            .order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc())
            .first()
        )
        if existing:
            logger.info(f"Resuming quiz attempt {existing.id} for user {user_id}")
            return existing

        if parent is not None:
            retake = (
                self.db.query(QuizAttempt)
                .filter(
                    and_(
                        QuizAttempt.practice_test_attempt_id == parent.id,
                        QuizAttempt.module_id == module_id,
                        QuizAttempt.status.notin_(RESUMABLE_STATUSES),
                    )
                )
                .first()
            )
            if retake:
                raise InvalidStateError(
                    "This module was already completed in the practice test"
                )

        if practice_test_attempt_id is None and module.max_attempts and module.max_attempts > 0:
            finished = (
                self.db.query(QuizAttempt)
                .filter(
                    and_(
                        QuizAttempt.user_id == user_id,
                        QuizAttempt.module_id == module_id,
                        QuizAttempt.practice_test_attempt_id.is_(None),
                        QuizAttempt.status.notin_(RESUMABLE_STATUSES),
                    )
                )
                .count()
            )
            if finished >= module.max_attempts:
                raise InvalidStateError(
                    f"Maximum attempts ({module.max_attempts}) reached"
                )

        with atomic(self.db):
            snapshot = self.snapshots.ensure_snapshot(module, rebuild=True)

            order = [entry["question_id"] for entry in snapshot.questions]
            if module.question_shuffle:
                self.rng.shuffle(order)

            budget = module.time_limit_seconds
            attempt = QuizAttempt(
                user_id=user_id,
                module_id=module.id,
                enrollment_id=enrollment.id,
                practice_test_attempt_id=practice_test_attempt_id,
                snapshot_id=snapshot.id,
                shuffled_question_order=order,
                questions_attempted_details=[],
                annotations={},
                start_time=None,
                remaining_time=budget,
                total_points_possible=snapshot.total_points,
                status=STATUS_IN_PROGRESS,
            )
            self.db.add(attempt)
            course_enrollment.touch(enrollment, module.id)

        self.db.refresh(attempt)
        logger.info(
            f"Started quiz attempt {attempt.id} on module {module.id} "
            f"(snapshot v{snapshot.version}) for user {user_id}"
        )
        return attempt

    def start_timed_session(self, attempt_id: int, user_id: int) -> dict:
        """
        Resume the clock. start_time is back-dated by the time already used so
        the countdown continues where it was paused.
        """
        attempt = self._owned(attempt_id, user_id)
        if attempt.status != STATUS_IN_PROGRESS:
            raise AlreadyFinalizedError(
                f"Quiz attempt is no longer in progress (status: {attempt.status})"
            )

        budget = attempt.module.time_limit_seconds if attempt.module else 0
        saved_remaining = (
            attempt.remaining_time if attempt.remaining_time is not None else budget
        )
        now = get_utc_now()

        if attempt.start_time is None:
            start_time = now - timedelta(seconds=max(0, budget - saved_remaining))
            with atomic(self.db):
                updated = (
                    self.db.query(QuizAttempt)
                    .filter(
                        and_(
                            QuizAttempt.id == attempt.id,
                            QuizAttempt.start_time.is_(None),
                        )
                    )
                    .update(
                        {QuizAttempt.start_time: start_time},
                        synchronize_session=False,
                    )
                )
            if not updated:
                logger.warning(
                    f"Timer for attempt {attempt.id} was started by a concurrent request"
                )
            self.db.refresh(attempt)

        if attempt.start_time is not None:
            elapsed = int((now - make_aware(attempt.start_time)).total_seconds())
            remaining = max(0, budget - elapsed)
        else:
            remaining = saved_remaining

        return {"start_time": attempt.start_time, "remaining_seconds": remaining}

    def save_answers(
        self, attempt_id: int, user_id: int, payload: SaveAnswersRequest
    ) -> QuizAttempt:
        attempt = self._owned(attempt_id, user_id)
        if attempt.status != STATUS_IN_PROGRESS:
            raise AlreadyFinalizedError(
                f"Cannot save answers, attempt status is {attempt.status}"
            )
        snapshot = self._snapshot_of(attempt)

        existing = {
            d.get("question_id"): d for d in attempt.questions_attempted_details or []
        }
        marked = set(payload.marked_for_review)
        details = []
        for entry in snapshot.questions:
            question_id = entry["question_id"]
            question_type = entry["question_type"]
            prior = existing.get(question_id, {})

            text = prior.get("user_text_answer") or ""
            number = prior.get("user_numerical_answer")
            boolean = prior.get("user_boolean_answer")
            key = str(question_id)
            if key in payload.user_answers:
                text, number, boolean = coerce_answer(
                    question_type, payload.user_answers[key]
                )

            details.append(
                {
                    "question_id": question_id,
                    "question_type": question_type,
                    "user_text_answer": text,
                    "user_numerical_answer": number,
                    "user_boolean_answer": boolean,
                    "is_correct": bool(prior.get("is_correct")),
                    "points_awarded": prior.get("points_awarded") or 0,
                    "requires_manual_review": bool(prior.get("requires_manual_review"))
                    or requires_manual_review(question_type, entry),
                    "is_manually_graded": bool(prior.get("is_manually_graded")),
                    "teacher_reviewer_id": prior.get("teacher_reviewer_id"),
                    "teacher_notes": prior.get("teacher_notes"),
                    "is_marked_for_review": question_id in marked,
                }
            )

        with atomic(self.db):
            attempt.questions_attempted_details = details
            attempt.last_active_question_index = payload.current_question_index
            if payload.remaining_time is not None:
                attempt.remaining_time = payload.remaining_time
            elif attempt.start_time is not None:
                budget = attempt.module.time_limit_seconds if attempt.module else 0
                elapsed = int(
                    (get_utc_now() - make_aware(attempt.start_time)).total_seconds()
                )
                attempt.remaining_time = max(0, budget - elapsed)
            # Any save pauses the clock
            attempt.start_time = None

            parent = attempt.practice_test_attempt
            if parent is not None:
                parent.last_active_quiz_module_id = attempt.module_id
                parent.last_active_quiz_attempt_id = attempt.id

            if attempt.enrollment is not None:
                course_enrollment.touch(attempt.enrollment, attempt.module_id)

        self.db.refresh(attempt)
        logger.debug(
            f"Saved attempt {attempt.id}: index={attempt.last_active_question_index}, "
            f"remaining={attempt.remaining_time}, marked={len(marked)}"
        )
        return attempt

    def submit(
        self, attempt_id: int, user_id: int, payload: SubmitAttemptRequest
    ) -> QuizAttempt:
        attempt = self._owned(attempt_id, user_id)
        if attempt.is_finalized:
            raise AlreadyFinalizedError(
                f"Quiz already submitted with status: {attempt.status}"
            )
        if attempt.status == STATUS_PARTIALLY_GRADED:
            raise InvalidStateError("Quiz is awaiting manual review")
        snapshot = self._snapshot_of(attempt)

        results = calculate_results(
            snapshot, payload.user_answers, attempt.questions_attempted_details
        )
        score = results["score"]
        passed = results["passed"]
        behaviour = (snapshot.settings or {}).get("timer_end_behavior")
        if payload.is_auto_submitted and behaviour == STRICT_ZERO_SCORE:
            score = 0
            passed = False

        final_status = (
            STATUS_PARTIALLY_GRADED if results["needs_manual_review"] else STATUS_GRADED
        )

        with atomic(self.db):
            attempt.questions_attempted_details = results["questions_attempted_details"]
            attempt.score = score
            attempt.total_points_possible = results["total_points_possible"]
            attempt.passed = passed
            attempt.status = final_status
            attempt.is_auto_submitted = payload.is_auto_submitted
            attempt.end_time = get_utc_now()

            parent = attempt.practice_test_attempt
            if parent is not None:
                next_module_id = next_quiz_module_id(self.db, attempt.module)
                parent.last_active_quiz_module_id = next_module_id
                parent.last_active_quiz_attempt_id = None
                logger.info(
                    f"Practice test {parent.id} resume pointer -> "
                    f"{next_module_id or 'end of test'}"
                )

            enrollment = attempt.enrollment
            if enrollment is not None:
                course_enrollment.record_quiz_points(
                    enrollment, score, results["total_points_possible"]
                )
                course_enrollment.touch(enrollment)
                if final_status == STATUS_GRADED:
                    course_enrollment.complete_quiz_module(
                        self.db, enrollment, attempt.module_id, passed
                    )

        self.db.refresh(attempt)
        logger.info(
            f"Quiz attempt {attempt.id} submitted: {attempt.status}, "
            f"score {attempt.score}/{attempt.total_points_possible}"
        )
        return attempt

    def review_item(
        self,
        attempt_id: int,
        item_index: int,
        manual_score: float,
        notes: Optional[str],
        reviewer: Principal,
    ) -> QuizAttempt:
        """Grade one held-back item; the attempt becomes graded with the last one."""
        if not reviewer.can(GRADE_ATTEMPTS):
            raise UnauthorizedError("Grading quiz attempts requires permission")

        attempt = self._get(attempt_id)
        if attempt.status != STATUS_PARTIALLY_GRADED:
            raise InvalidStateError(
                f"Quiz attempt is not awaiting review (status: {attempt.status})"
            )
        snapshot = self._snapshot_of(attempt)

        details = copy.deepcopy(attempt.questions_attempted_details or [])
        if item_index < 0 or item_index >= len(details):
            raise NotFoundError(f"Item {item_index} not found on this attempt")
        item = details[item_index]
        if not item.get("requires_manual_review") or item.get("is_manually_graded"):
            raise InvalidStateError("Item does not require manual review")

        entry = snapshot.entry_for(item.get("question_id"))
        max_points = entry.get("points_possible", 0) if entry else 0
        if manual_score > max_points:
            raise InvalidStateError(
                f"Score {manual_score} exceeds the maximum possible points of {max_points}"
            )

        item["is_manually_graded"] = True
        item["points_awarded"] = manual_score
        item["is_correct"] = manual_score > 0
        item["teacher_reviewer_id"] = reviewer.id
        item["teacher_notes"] = notes or ""

        previous_score = attempt.score or 0
        strict_zero = attempt.is_auto_submitted and (
            (snapshot.settings or {}).get("timer_end_behavior") == STRICT_ZERO_SCORE
        )
        score = 0 if strict_zero else sum(d.get("points_awarded") or 0 for d in details)
        outstanding = any(
            d.get("requires_manual_review") and not d.get("is_manually_graded")
            for d in details
        )

        with atomic(self.db):
            attempt.questions_attempted_details = details
            attempt.score = score

            enrollment = attempt.enrollment
            if enrollment is not None:
                course_enrollment.record_quiz_points(
                    enrollment, score - previous_score, 0
                )

            if not outstanding:
                attempt.status = STATUS_GRADED
                passing = (snapshot.settings or {}).get("passing_score_percentage") or 0
                attempt.passed = (not strict_zero) and is_passing(
                    score, attempt.total_points_possible, passing
                )
                if enrollment is not None:
                    course_enrollment.complete_quiz_module(
                        self.db, enrollment, attempt.module_id, attempt.passed
                    )

        self.db.refresh(attempt)
        logger.info(
            f"Reviewer {reviewer.id} graded item {item_index} of attempt {attempt.id} "
            f"with {manual_score}; status {attempt.status}"
        )
        return attempt

    # ---------- listings ----------

    def list_enrollment_attempts(
        self, enrollment_id: int, principal: Principal
    ) -> List[QuizAttempt]:
        enrollment = (
            self.db.query(Enrollment).filter(Enrollment.id == enrollment_id).first()
        )
        if not enrollment or not principal.owns_or_can(
            enrollment.user_id, READ_ALL_ATTEMPTS
        ):
            raise UnauthorizedError("You do not have access to this enrollment")
        return (
            self.db.query(QuizAttempt)
            .filter(QuizAttempt.enrollment_id == enrollment_id)
            .order_by(QuizAttempt.created_at, QuizAttempt.id)
            .all()
        )

    def list_user_module_attempts(
        self, user_id: int, module_id: int, principal: Principal
    ) -> List[QuizAttempt]:
        if not principal.owns_or_can(user_id, READ_ALL_ATTEMPTS):
            raise UnauthorizedError("You can only view your own quiz attempts")
        return (
            self.db.query(QuizAttempt)
            .filter(
                and_(QuizAttempt.user_id == user_id, QuizAttempt.module_id == module_id)
            )
            .order_by(QuizAttempt.created_at, QuizAttempt.id)
            .all()
        )

    def list_course_attempts(self, course_id: int) -> List[dict]:
        """Reviewer view of every quiz attempt in a course, newest first."""
        sections = (
            self.db.query(Section)
            .filter(Section.course_id == course_id)
            .order_by(Section.position)
            .all()
        )
        section_titles = {
            module.id: section.title
            for section in sections
            for module in section.modules
            if isinstance(module, QuizModule)
        }
        if not section_titles:
            return []

        attempts = (
            self.db.query(QuizAttempt)
            .filter(QuizAttempt.module_id.in_(list(section_titles)))
            .order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc())
            .all()
        )

        rows = []
        for attempt in attempts:
            settings = attempt.snapshot.settings if attempt.snapshot else {}
            duration = None
            if attempt.start_time and attempt.end_time:
                duration = (
                    make_aware(attempt.end_time) - make_aware(attempt.start_time)
                ).total_seconds()
            rows.append(
                {
                    "id": attempt.id,
                    "user_id": attempt.user_id,
                    "user_name": attempt.user.full_name if attempt.user else None,
                    "module_id": attempt.module_id,
                    "quiz_title": (settings or {}).get("title") or "Untitled Quiz",
                    "section": section_titles.get(attempt.module_id, "Section Not Found"),
                    "score": attempt.score,
                    "total_points_possible": attempt.total_points_possible,
                    "passed": attempt.passed,
                    "status": attempt.status,
                    "created_at": attempt.created_at,
                    "duration": duration,
                }
            )
        return rows

    def delete_attempt(self, attempt_id: int) -> None:
        attempt = self._get(attempt_id)
        with atomic(self.db):
            parent = attempt.practice_test_attempt
            if parent is not None and parent.last_active_quiz_attempt_id == attempt.id:
                parent.last_active_quiz_attempt_id = None
            self.db.delete(attempt)
        logger.info(f"Deleted quiz attempt {attempt_id}")

    def get_snapshot(self, module_id: int) -> QuestionSnapshot:
        return self.snapshots.get_latest_or_404(module_id)
