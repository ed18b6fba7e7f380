# app/routers/quiz_attempt.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import get_current_principal, require_capability
from app.core.security import DELETE_ATTEMPTS, READ_ALL_ATTEMPTS, Principal
from app.schemas.quiz_attempt import (
    CourseAttemptSummary,
    QuizAttemptResponse,
    QuizAttemptStart,
    ReviewItemRequest,
    SaveAnnotationsRequest,
    SaveAnswersRequest,
    SnapshotResponse,
    SubmitAttemptRequest,
    TimedSessionResponse,
)
from app.services.annotation import AnnotationService
from app.services.quiz_attempt import QuizAttemptService

router = APIRouter(
    prefix="/quiz-attempts",
    tags=["Quiz Attempts"],
    responses={404: {"description": "Not found"}},
)


# ==================== Attempt Lifecycle ====================


@router.post("/start", response_model=QuizAttemptResponse)
def start_quiz_attempt(
    payload: QuizAttemptStart,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Start a quiz attempt, or resume the open one on the same module.
    """
    service = QuizAttemptService(db)
    return service.start(
        principal.id,
        payload.quiz_module_id,
        payload.enrollment_id,
        payload.practice_test_attempt_id,
    )


@router.post("/{attempt_id}/start-timer", response_model=TimedSessionResponse)
def start_timed_session(
    attempt_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Start or resume the countdown and return the seconds left.
    """
    service = QuizAttemptService(db)
    return service.start_timed_session(attempt_id, principal.id)


@router.put("/{attempt_id}/save-answers", response_model=QuizAttemptResponse)
def save_answers(
    attempt_id: int,
    payload: SaveAnswersRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Save in-progress answers. Pauses the timer.
    """
    service = QuizAttemptService(db)
    return service.save_answers(attempt_id, principal.id, payload)


@router.put("/{attempt_id}/submit", response_model=QuizAttemptResponse)
def submit_quiz_attempt(
    attempt_id: int,
    payload: SubmitAttemptRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Grade the attempt against its snapshot.
    Free-text items leave it partially graded until reviewed.
    """
    service = QuizAttemptService(db)
    return service.submit(attempt_id, principal.id, payload)


@router.put("/{attempt_id}/review/{item_index}", response_model=QuizAttemptResponse)
def review_attempt_item(
    attempt_id: int,
    item_index: int,
    payload: ReviewItemRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Manually grade one item of a partially graded attempt.
    Reviewers only.
    """
    service = QuizAttemptService(db)
    return service.review_item(
        attempt_id, item_index, payload.manual_score, payload.teacher_notes, principal
    )


# ==================== Listings ====================


@router.get("/enrollment/{enrollment_id}", response_model=List[QuizAttemptResponse])
def list_enrollment_attempts(
    enrollment_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = QuizAttemptService(db)
    return service.list_enrollment_attempts(enrollment_id, principal)


@router.get(
    "/user/{user_id}/module/{module_id}", response_model=List[QuizAttemptResponse]
)
def list_user_module_attempts(
    user_id: int,
    module_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    All attempts of a user on one quiz module, oldest first.
    """
    service = QuizAttemptService(db)
    return service.list_user_module_attempts(user_id, module_id, principal)


@router.get("/course/{course_id}", response_model=List[CourseAttemptSummary])
def list_course_attempts(
    course_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_capability(READ_ALL_ATTEMPTS)),
):
    """
    Every quiz attempt in a course, newest first.
    Reviewers only.
    """
    service = QuizAttemptService(db)
    return service.list_course_attempts(course_id)


@router.get("/snapshot/{module_id}", response_model=SnapshotResponse)
def get_module_snapshot(
    module_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Latest question snapshot of a quiz module.
    """
    service = QuizAttemptService(db)
    return service.get_snapshot(module_id)


@router.get("/{attempt_id}", response_model=QuizAttemptResponse)
def get_quiz_attempt(
    attempt_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = QuizAttemptService(db)
    return service.get_attempt(attempt_id, principal)


@router.delete("/{attempt_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_quiz_attempt(
    attempt_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_capability(DELETE_ATTEMPTS)),
):
    """
    Delete a quiz attempt.
    Admin only.
    """
    service = QuizAttemptService(db)
    service.delete_attempt(attempt_id)
    return None


# ==================== Annotations ====================


@router.put("/{attempt_id}/annotations")
def save_annotations(
    attempt_id: int,
    payload: SaveAnnotationsRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Merge highlights and notes for one question of the attempt.
    """
    service = AnnotationService(db)
    annotations = service.save(
        attempt_id, principal.id, payload.question_id, payload.annotation_data
    )
    return {
        "success": True,
        "message": "Annotations saved",
        "data": {"question_id": payload.question_id, "annotations": annotations},
    }


@router.delete("/{attempt_id}/annotations/{question_id}/{area}/{highlight_id}")
def delete_annotation(
    attempt_id: int,
    question_id: int,
    area: str,
    highlight_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Remove one highlight with its note and snippet.
    """
    service = AnnotationService(db)
    removed = service.delete(attempt_id, principal.id, question_id, area, highlight_id)
    return {
        "success": True,
        "message": "Highlight removed" if removed else "Highlight not found",
    }
