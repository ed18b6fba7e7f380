# app/schemas/course_enrollment.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

# ==================== Enrollment Schemas ====================


class EnrollmentCreate(BaseModel):
    """Schema for enrolling in a course"""

    course_id: int = Field(..., description="Course ID to enroll in")


class MarkProgressRequest(BaseModel):
    """Schema for marking a content item or module complete"""

    course_id: int = Field(..., description="Course ID")
    status_update: Literal["content_viewed", "quiz_completed", "module_completed"]
    module_id: Optional[int] = Field(None, description="Module the update refers to")
    content_id: Optional[int] = Field(None, description="Lesson content viewed")
    quiz_attempt_id: Optional[int] = Field(
        None, description="Passed attempt backing a quiz_completed update"
    )

    @model_validator(mode="after")
    def check_required_ids(self):
        if self.status_update == "content_viewed" and self.content_id is None:
            raise ValueError("content_id is required for content_viewed")
        if self.status_update != "content_viewed" and self.module_id is None:
            raise ValueError(f"module_id is required for {self.status_update}")
        if self.status_update == "quiz_completed" and self.quiz_attempt_id is None:
            raise ValueError("quiz_attempt_id is required for quiz_completed")
        return self


class ResetProgressRequest(BaseModel):
    course_id: int = Field(..., description="Course ID")


class CompletedModule(BaseModel):
    module_id: int
    completion_date: Optional[str] = None


class EnrollmentResponse(BaseModel):
    """Schema for enrollment response"""

    id: int
    user_id: int
    course_id: int
    status: str
    progress_percentage: int = Field(0, description="Course completion percentage")
    grade: Optional[float] = None
    completed_modules: List[CompletedModule] = Field(default_factory=list)
    completed_content_ids: List[int] = Field(default_factory=list)
    quiz_points_earned: float = 0
    quiz_points_possible: float = 0
    last_active_module_id: Optional[int] = None
    enrolled_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
