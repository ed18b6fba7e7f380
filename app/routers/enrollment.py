# app/routers/enrollment.py
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import get_current_principal, require_capability
from app.core.security import MANAGE_ENROLLMENTS, Principal
from app.schemas.course_enrollment import (
    EnrollmentCreate,
    EnrollmentResponse,
    MarkProgressRequest,
    ResetProgressRequest,
)
from app.services.course_enrollment import EnrollmentService

router = APIRouter(
    prefix="/enrollments",
    tags=["Enrollments"],
    responses={404: {"description": "Not found"}},
)


@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
def enroll_in_course(
    payload: EnrollmentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Enroll the current user in a course.
    Enrolling twice returns the existing enrollment.
    """
    service = EnrollmentService(db)
    return service.enroll(principal.id, payload.course_id)


@router.get("/course/{course_id}", response_model=Optional[EnrollmentResponse])
def get_course_enrollment(
    course_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    The current user's enrollment in a course, or null when not enrolled.
    """
    service = EnrollmentService(db)
    return service.get_enrollment(principal.id, course_id)


@router.post("/mark-progress", response_model=EnrollmentResponse)
def mark_progress(
    payload: MarkProgressRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = EnrollmentService(db)
    return service.mark_progress(principal.id, payload)


@router.post("/reset-progress", response_model=EnrollmentResponse)
def reset_progress(
    payload: ResetProgressRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Clear progress on a course and remove the quiz attempts made under it.
    """
    service = EnrollmentService(db)
    return service.reset_progress(principal.id, payload.course_id)


@router.post(
    "/course/{course_id}/recalculate", response_model=List[EnrollmentResponse]
)
def recalculate_course_progress(
    course_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_capability(MANAGE_ENROLLMENTS)),
):
    """
    Re-derive progress for every enrollment of a course.
    Admin only.
    """
    service = EnrollmentService(db)
    return service.recalculate_course_progress(course_id)
