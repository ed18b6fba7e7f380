"""
Answer checking against a frozen snapshot entry.

Everything here is pure: the functions read a snapshot entry (a dict as stored
in ``QuestionSnapshot.questions``) and the student's raw answer, and never touch
the database.
"""

import logging
import math
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)

MULTIPLE_CHOICE = "multipleChoice"
TRUE_FALSE = "trueFalse"
SHORT_ANSWER = "shortAnswer"
NUMERICAL = "numerical"
ESSAY = "essay"

AUTO_GRADABLE_TYPES = (MULTIPLE_CHOICE, TRUE_FALSE, SHORT_ANSWER, NUMERICAL, ESSAY)
# Only free-text answers can be held back for a teacher
MANUALLY_REVIEWABLE_TYPES = (SHORT_ANSWER, ESSAY)


def has_answer(user_answer: Any) -> bool:
    if user_answer is None:
        return False
    if isinstance(user_answer, str) and not user_answer.strip():
        return False
    return True


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def is_auto_gradable(question_type: str, snapshot_entry: Optional[dict] = None) -> bool:
    """True when the checker knows how to grade this question type."""
    return question_type in AUTO_GRADABLE_TYPES


def requires_manual_review(question_type: str, snapshot_entry: dict) -> bool:
    """
    Whether an item must wait for a teacher.

    Free-text items flagged for manual grading always wait; so does any type
    the checker does not recognise.
    """
    if not is_auto_gradable(question_type, snapshot_entry):
        return True
    return bool(snapshot_entry.get("requires_manual_grading")) and (
        question_type in MANUALLY_REVIEWABLE_TYPES
    )


def check_answer(question_type: str, user_answer: Any, snapshot_entry: dict) -> bool:
    if not has_answer(user_answer):
        return False

    if question_type == MULTIPLE_CHOICE:
        correct = next(
            (opt for opt in snapshot_entry.get("options") or [] if opt.get("is_correct")),
            None,
        )
        if correct is None:
            return False
        expected = correct.get("option_text_html") or correct.get("option_text_raw") or ""
        return str(user_answer).strip() == str(expected).strip()

    if question_type == TRUE_FALSE:
        expected = snapshot_entry.get("true_false_answer")
        if expected is None:
            return False
        return _to_bool(user_answer) == bool(expected)

    if question_type == NUMERICAL:
        numerical = snapshot_entry.get("numerical_answer") or {}
        expected = _to_float(numerical.get("answer"))
        if expected is None:
            return False
        tolerance = _to_float(numerical.get("tolerance")) or 0.0
        value = _to_float(user_answer)
        if value is None:
            return False
        # Rounded to ignore float noise at the tolerance boundary
        return round(abs(value - expected), 9) <= tolerance

    if question_type in (SHORT_ANSWER, ESSAY):
        case_sensitive = snapshot_entry.get("case_sensitive") is True
        given = str(user_answer).strip()
        if not case_sensitive:
            given = given.lower()
        for accepted in snapshot_entry.get("correct_answers") or []:
            candidate = str(accepted.get("answer") or "").strip()
            if not case_sensitive:
                candidate = candidate.lower()
            if candidate == given:
                return True
        return False

    logger.warning(f"Unknown question type '{question_type}', cannot auto-grade")
    return False


def coerce_answer(
    question_type: str, raw: Any
) -> Tuple[str, Optional[float], Optional[bool]]:
    """
    Split a raw answer into the typed storage triple
    (user_text_answer, user_numerical_answer, user_boolean_answer).
    """
    text, number, boolean = "", None, None
    if not has_answer(raw):
        return text, number, boolean

    if question_type == TRUE_FALSE:
        boolean = _to_bool(raw)
    elif question_type == NUMERICAL:
        number = _to_float(raw)
    else:
        text = str(raw)
    return text, number, boolean


def stored_answer(detail: dict) -> Any:
    """Inverse of coerce_answer for a persisted detail record."""
    question_type = detail.get("question_type")
    if question_type == TRUE_FALSE:
        return detail.get("user_boolean_answer")
    if question_type == NUMERICAL:
        return detail.get("user_numerical_answer")
    return detail.get("user_text_answer") or None
