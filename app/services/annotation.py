# app/services/annotation.py
import copy
import logging
import re
from typing import Dict, Tuple

from sqlalchemy.orm import Session

from app.core.database import atomic
from app.core.exceptions import NotFoundError, PayloadValidationError, UnauthorizedError
from app.models.quiz_attempt import QuizAttempt
from app.schemas.quiz_attempt import ANNOTATION_AREAS, QuestionAnnotations

logger = logging.getLogger(__name__)

SEPARATOR = "^"


def highlight_pattern(highlight_id: str) -> "re.Pattern":
    """
    Match one ``^``-separated highlight segment carrying ``$<id>$``,
    together with the separators around it.
    """
    escaped = re.escape(highlight_id)
    return re.compile(r"(?:^|\^)([^^]*?\$" + escaped + r"\$(?:[^^]*?))(?:\^|$)")


def strip_highlight(serialized: str, highlight_id: str) -> str:
    cleaned = highlight_pattern(highlight_id).sub(SEPARATOR, serialized)
    cleaned = re.sub(r"\^{2,}", SEPARATOR, cleaned)
    return cleaned.strip(SEPARATOR)


def apply_patch(annotations: dict, question_id: str, patch: QuestionAnnotations) -> dict:
    """
    Merge an area patch into a copy of an attempt's annotation map.

    An area whose notes and serialized string are both empty is dropped, and
    the question key goes with its last area. Otherwise each field present in
    the patch replaces the stored one and absent fields are left alone.
    """
    result = copy.deepcopy(annotations or {})
    question = result.get(question_id, {})

    for area, data in patch.present_areas():
        if data.notes is not None and not data.notes and not data.serialized:
            question.pop(area, None)
            continue
        stored = question.setdefault(area, {})
        for field in ("serialized", "notes", "snippets"):
            value = getattr(data, field)
            if value is not None:
                stored[field] = value

    if question:
        result[question_id] = question
    else:
        result.pop(question_id, None)
    return result


def remove_highlight(
    annotations: dict, question_id: str, area: str, highlight_id: str
) -> Tuple[dict, bool]:
    """Drop one highlight's note, snippet and serialized segment; (map, changed)."""
    result = copy.deepcopy(annotations or {})
    stored = result.get(question_id, {}).get(area)
    if not stored:
        return result, False

    changed = False
    for field in ("notes", "snippets"):
        entries = stored.get(field) or {}
        if highlight_id in entries:
            del entries[highlight_id]
            stored[field] = entries
            changed = True

    serialized = stored.get("serialized")
    if serialized:
        cleaned = strip_highlight(serialized, highlight_id)
        if cleaned != serialized:
            stored["serialized"] = cleaned
            changed = True

    return result, changed


class AnnotationService:
    def __init__(self, db: Session):
        self.db = db

    def _owned_attempt(self, attempt_id: int, user_id: int) -> QuizAttempt:
        attempt = self.db.query(QuizAttempt).filter(QuizAttempt.id == attempt_id).first()
        if not attempt:
            raise NotFoundError("Quiz attempt not found")
        if attempt.user_id != user_id:
            raise UnauthorizedError("You do not own this quiz attempt")
        return attempt

    def save(
        self, attempt_id: int, user_id: int, question_id: int, patch: QuestionAnnotations
    ) -> Dict:
        attempt = self._owned_attempt(attempt_id, user_id)
        key = str(question_id)

        with atomic(self.db):
            attempt.annotations = apply_patch(attempt.annotations, key, patch)

        return copy.deepcopy((attempt.annotations or {}).get(key, {}))

    def delete(
        self,
        attempt_id: int,
        user_id: int,
        question_id: int,
        area: str,
        highlight_id: str,
    ) -> bool:
        """Remove one highlight. Deleting something already gone succeeds as a no-op."""
        if area not in ANNOTATION_AREAS:
            raise PayloadValidationError(f"Invalid annotation area '{area}'")

        attempt = self._owned_attempt(attempt_id, user_id)
        annotations, changed = remove_highlight(
            attempt.annotations, str(question_id), area, highlight_id
        )
        if not changed:
            logger.info(
                f"Highlight {highlight_id} not present on attempt {attempt_id}, "
                f"question {question_id}, area {area}"
            )
            return False

        with atomic(self.db):
            attempt.annotations = annotations
        return True
