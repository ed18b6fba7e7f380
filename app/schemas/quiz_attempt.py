# app/schemas/quiz_attempt.py
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

ANNOTATION_AREAS = ("questionText", "questionContext")


# ==================== Annotation Schemas ====================


class AnnotationArea(BaseModel):
    """Highlights and notes on one area of a question"""

    model_config = ConfigDict(extra="forbid")

    serialized: Optional[str] = Field(
        None, description="Serialized highlight ranges, '^'-separated"
    )
    notes: Optional[Dict[str, str]] = Field(
        None, description="Highlight id -> note text"
    )
    snippets: Optional[Dict[str, str]] = Field(
        None, description="Highlight id -> highlighted text snippet"
    )


class QuestionAnnotations(BaseModel):
    """Annotation patch for one question, keyed by area"""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    question_text: Optional[AnnotationArea] = Field(None, alias="questionText")
    question_context: Optional[AnnotationArea] = Field(None, alias="questionContext")

    def present_areas(self) -> Iterator[Tuple[str, AnnotationArea]]:
        if self.question_text is not None:
            yield "questionText", self.question_text
        if self.question_context is not None:
            yield "questionContext", self.question_context


class SaveAnnotationsRequest(BaseModel):
    question_id: int = Field(..., description="Question the annotations belong to")
    annotation_data: QuestionAnnotations


# ==================== Quiz Attempt Requests ====================


class QuizAttemptStart(BaseModel):
    """Schema for starting (or resuming) a quiz attempt"""

    quiz_module_id: int = Field(..., description="Quiz module to attempt")
    enrollment_id: int = Field(..., description="Enrollment the attempt belongs to")
    practice_test_attempt_id: Optional[int] = Field(
        None, description="Parent practice test attempt, if any"
    )


class SaveAnswersRequest(BaseModel):
    """In-progress answers; keys are question ids"""

    user_answers: Dict[str, Any] = Field(default_factory=dict)
    current_question_index: int = Field(0, ge=0)
    remaining_time: Optional[int] = Field(None, ge=0, description="Seconds left")
    marked_for_review: List[int] = Field(default_factory=list)


class SubmitAttemptRequest(BaseModel):
    user_answers: Dict[str, Any] = Field(default_factory=dict)
    is_auto_submitted: bool = False


class ReviewItemRequest(BaseModel):
    """Manual grade for one free-text item"""

    manual_score: float = Field(..., ge=0)
    teacher_notes: Optional[str] = None


# ==================== Quiz Attempt Responses ====================


class QuestionAttemptDetail(BaseModel):
    question_id: int
    question_type: str
    user_text_answer: str = ""
    user_numerical_answer: Optional[float] = None
    user_boolean_answer: Optional[bool] = None
    is_correct: bool = False
    points_awarded: float = 0
    requires_manual_review: bool = False
    is_manually_graded: bool = False
    teacher_reviewer_id: Optional[int] = None
    teacher_notes: Optional[str] = None
    is_marked_for_review: bool = False


class QuizAttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    module_id: int
    enrollment_id: Optional[int] = None
    practice_test_attempt_id: Optional[int] = None
    snapshot_id: int
    shuffled_question_order: List[int] = Field(default_factory=list)
    questions_attempted_details: List[QuestionAttemptDetail] = Field(
        default_factory=list
    )
    annotations: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    remaining_time: Optional[int] = None
    score: float = 0
    total_points_possible: float = 0
    passed: bool = False
    status: str
    last_active_question_index: int = 0
    created_at: Optional[datetime] = None


class TimedSessionResponse(BaseModel):
    start_time: Optional[datetime] = None
    remaining_seconds: int


class CourseAttemptSummary(BaseModel):
    """Row of the reviewer's per-course attempt list"""

    id: int
    user_id: int
    user_name: Optional[str] = None
    module_id: int
    quiz_title: str
    section: str
    score: float
    total_points_possible: float
    passed: bool
    status: str
    created_at: Optional[datetime] = None
    duration: Optional[float] = Field(None, description="Seconds from start to end")


class SnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    module_id: int
    section_id: Optional[int] = None
    version: int
    settings: Dict[str, Any]
    questions: List[Dict[str, Any]]
    created_at: Optional[datetime] = None
