# app/routers/practice_test.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import get_current_principal, require_capability
from app.core.security import READ_ALL_PRACTICE_TESTS, Principal
from app.schemas.practice_test import (
    PracticeTestAttemptResponse,
    PracticeTestDetailResponse,
    PracticeTestSummary,
    SaveProgressRequest,
    SaveProgressResponse,
)
from app.schemas.quiz_attempt import QuizAttemptResponse
from app.services.practice_test import PracticeTestService

router = APIRouter(
    prefix="/practice-tests",
    tags=["Practice Tests"],
    responses={404: {"description": "Not found"}},
)


@router.post("/start/{section_id}", response_model=PracticeTestAttemptResponse)
def start_practice_test(
    section_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Start the practice test owning this section, or resume the open attempt.
    """
    service = PracticeTestService(db)
    return service.start(principal.id, section_id)


@router.put("/{attempt_id}/save-progress", response_model=SaveProgressResponse)
def save_practice_test_progress(
    attempt_id: int,
    payload: SaveProgressRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = PracticeTestService(db)
    attempt, message = service.save_progress(attempt_id, principal.id, payload)
    return {"success": True, "message": message, "data": attempt}


@router.put("/{attempt_id}/submit", response_model=PracticeTestAttemptResponse)
def submit_practice_test(
    attempt_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Convert raw section results into scaled scores and grade the attempt.
    """
    service = PracticeTestService(db)
    return service.submit(attempt_id, principal.id)


@router.get("/course/{course_id}", response_model=List[PracticeTestSummary])
def list_course_practice_tests(
    course_id: int,
    status: Optional[str] = Query(
        None, description="Filter by status; 'graded' includes submitted attempts"
    ),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_capability(READ_ALL_PRACTICE_TESTS)),
):
    """
    Practice test attempts of a course, newest first.
    Reviewers only.
    """
    service = PracticeTestService(db)
    return service.list_course_attempts(course_id, status)


@router.get("/{attempt_id}", response_model=PracticeTestDetailResponse)
def get_practice_test_details(
    attempt_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = PracticeTestService(db)
    attempt = service.get_attempt_details(attempt_id, principal)
    data = PracticeTestAttemptResponse.model_validate(attempt).model_dump()
    data.update(
        course_title=attempt.course.title if attempt.course else None,
        user_name=attempt.user.full_name if attempt.user else None,
        sections=service.section_refs(attempt),
        quiz_attempts=[
            QuizAttemptResponse.model_validate(child) for child in attempt.quiz_attempts
        ],
    )
    return data
