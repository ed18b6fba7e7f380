# tests/test_annotation.py
"""
Annotation Tests
"""

import pytest

from app.core.exceptions import PayloadValidationError, UnauthorizedError
from app.schemas.quiz_attempt import QuestionAnnotations
from app.services.annotation import (
    AnnotationService,
    apply_patch,
    remove_highlight,
    strip_highlight,
)
from app.services.quiz_attempt import QuizAttemptService
from tests.conftest import make_user

SERIALIZED = "type:textContent|0$5$h1$hl$^6$9$h2$hl$^10$14$h3$hl$"


class TestStripHighlight:
    def test_middle_segment(self):
        assert strip_highlight(SERIALIZED, "h2") == "type:textContent|0$5$h1$hl$^10$14$h3$hl$"

    def test_first_segment(self):
        assert strip_highlight(SERIALIZED, "h1") == "6$9$h2$hl$^10$14$h3$hl$"

    def test_last_segment(self):
        assert strip_highlight(SERIALIZED, "h3") == "type:textContent|0$5$h1$hl$^6$9$h2$hl$"

    def test_only_segment(self):
        assert strip_highlight("0$5$h1$hl$", "h1") == ""

    def test_missing_id_leaves_string(self):
        assert strip_highlight(SERIALIZED, "h9") == SERIALIZED

    def test_id_is_matched_literally(self):
        assert strip_highlight("0$1$a.b$^2$3$axb$", "a.b") == "2$3$axb$"


class TestApplyPatch:
    def test_merges_present_fields_only(self):
        stored = {"7": {"questionText": {"serialized": "x", "notes": {"h1": "old"}}}}
        patch = QuestionAnnotations(questionText={"notes": {"h1": "new"}})

        result = apply_patch(stored, "7", patch)

        assert result["7"]["questionText"] == {"serialized": "x", "notes": {"h1": "new"}}
        assert stored["7"]["questionText"]["notes"] == {"h1": "old"}

    def test_empty_area_is_dropped_with_question(self):
        stored = {"7": {"questionText": {"serialized": "x", "notes": {"h1": "n"}}}}
        patch = QuestionAnnotations(questionText={"serialized": "", "notes": {}})

        assert apply_patch(stored, "7", patch) == {}

    def test_other_questions_untouched(self):
        stored = {"1": {"questionContext": {"serialized": "a"}}}
        patch = QuestionAnnotations(questionText={"serialized": "b"})

        result = apply_patch(stored, "2", patch)

        assert result == {
            "1": {"questionContext": {"serialized": "a"}},
            "2": {"questionText": {"serialized": "b"}},
        }

    def test_unknown_area_rejected(self):
        with pytest.raises(ValueError):
            QuestionAnnotations.model_validate({"answerText": {"serialized": "x"}})


class TestRemoveHighlight:
    def test_removes_note_snippet_and_segment(self):
        stored = {
            "7": {
                "questionText": {
                    "serialized": "0$5$h1$hl$^6$9$h2$hl$",
                    "notes": {"h1": "n1", "h2": "n2"},
                    "snippets": {"h1": "s1"},
                }
            }
        }
        result, changed = remove_highlight(stored, "7", "questionText", "h1")

        assert changed
        assert result["7"]["questionText"] == {
            "serialized": "6$9$h2$hl$",
            "notes": {"h2": "n2"},
            "snippets": {},
        }

    def test_second_delete_is_a_no_op(self):
        stored = {"7": {"questionText": {"serialized": "0$5$h1$hl$", "notes": {"h1": "n"}}}}
        once, changed = remove_highlight(stored, "7", "questionText", "h1")
        twice, changed_again = remove_highlight(once, "7", "questionText", "h1")

        assert changed
        assert not changed_again
        assert twice == once

    def test_missing_area(self):
        result, changed = remove_highlight({}, "7", "questionText", "h1")
        assert result == {}
        assert not changed


class TestAnnotationService:
    def test_save_and_delete_roundtrip_on_attempt(self, db, student, quiz_course):
        attempt = QuizAttemptService(db).start(
            student.id, quiz_course["module"].id, quiz_course["enrollment"].id
        )
        service = AnnotationService(db)
        patch = QuestionAnnotations(
            questionText={
                "serialized": "0$5$h1$hl$",
                "notes": {"h1": "remember this"},
                "snippets": {"h1": "Capit"},
            }
        )

        saved = service.save(attempt.id, student.id, quiz_course["mc"].id, patch)
        assert saved["questionText"]["notes"] == {"h1": "remember this"}

        assert service.delete(attempt.id, student.id, quiz_course["mc"].id, "questionText", "h1")
        assert not service.delete(
            attempt.id, student.id, quiz_course["mc"].id, "questionText", "h1"
        )
        db.refresh(attempt)
        area = attempt.annotations[str(quiz_course["mc"].id)]["questionText"]
        assert area["serialized"] == ""
        assert area["notes"] == {}

    def test_invalid_area(self, db, student, quiz_course):
        attempt = QuizAttemptService(db).start(
            student.id, quiz_course["module"].id, quiz_course["enrollment"].id
        )
        with pytest.raises(PayloadValidationError):
            AnnotationService(db).delete(attempt.id, student.id, 1, "answerText", "h1")

    def test_other_user_cannot_annotate(self, db, student, quiz_course):
        attempt = QuizAttemptService(db).start(
            student.id, quiz_course["module"].id, quiz_course["enrollment"].id
        )
        intruder = make_user(db)
        patch = QuestionAnnotations(questionText={"serialized": "x"})
        with pytest.raises(UnauthorizedError):
            AnnotationService(db).save(attempt.id, intruder.id, 1, patch)
