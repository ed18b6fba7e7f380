# tests/test_answer_checker.py
"""
Answer Checker Tests
"""

import pytest

from app.utils.answer_checker import (
    check_answer,
    coerce_answer,
    has_answer,
    requires_manual_review,
    stored_answer,
)

MC_ENTRY = {
    "options": [
        {"option_text_html": "<p>Paris</p>", "option_text_raw": "Paris", "is_correct": True},
        {"option_text_html": "<p>Rome</p>", "option_text_raw": "Rome", "is_correct": False},
    ]
}
NUMERICAL_ENTRY = {"numerical_answer": {"answer": 5.0, "tolerance": 0.1}}
SHORT_ENTRY = {"correct_answers": [{"answer": "Paris"}], "case_sensitive": False}


class TestCheckAnswer:
    """Tests for check_answer."""

    def test_multiple_choice_matches_option_html(self):
        assert check_answer("multipleChoice", "<p>Paris</p>", MC_ENTRY)
        assert check_answer("multipleChoice", "  <p>Paris</p> ", MC_ENTRY)
        assert not check_answer("multipleChoice", "<p>Rome</p>", MC_ENTRY)

    def test_multiple_choice_without_correct_option(self):
        entry = {"options": [{"option_text_html": "A", "is_correct": False}]}
        assert not check_answer("multipleChoice", "A", entry)

    def test_numerical_within_tolerance(self):
        assert check_answer("numerical", 5.05, NUMERICAL_ENTRY)
        assert check_answer("numerical", "4.9", NUMERICAL_ENTRY)

    def test_numerical_outside_tolerance(self):
        assert not check_answer("numerical", 5.2, NUMERICAL_ENTRY)

    def test_numerical_rejects_non_numbers(self):
        assert not check_answer("numerical", "five", NUMERICAL_ENTRY)
        assert not check_answer("numerical", "nan", NUMERICAL_ENTRY)

    def test_true_false(self):
        entry = {"true_false_answer": True}
        assert check_answer("trueFalse", True, entry)
        assert check_answer("trueFalse", "true", entry)
        assert not check_answer("trueFalse", "false", entry)
        assert not check_answer("trueFalse", True, {"true_false_answer": None})

    def test_short_answer_case_insensitive(self):
        assert check_answer("shortAnswer", " paris ", SHORT_ENTRY)

    def test_short_answer_case_sensitive(self):
        entry = dict(SHORT_ENTRY, case_sensitive=True)
        assert not check_answer("shortAnswer", "paris", entry)
        assert check_answer("shortAnswer", "Paris", entry)

    @pytest.mark.parametrize("blank", [None, "", "   "])
    def test_blank_answers_are_wrong(self, blank):
        assert not check_answer("shortAnswer", blank, SHORT_ENTRY)

    def test_unknown_type_is_never_correct(self):
        assert not check_answer("matching", "anything", {})


class TestManualReview:
    """Tests for requires_manual_review."""

    def test_flagged_essay_waits(self):
        assert requires_manual_review("essay", {"requires_manual_grading": True})

    def test_unflagged_short_answer_is_auto_graded(self):
        assert not requires_manual_review("shortAnswer", {"requires_manual_grading": False})

    def test_flag_ignored_on_closed_types(self):
        assert not requires_manual_review("multipleChoice", {"requires_manual_grading": True})

    def test_unknown_type_waits(self):
        assert requires_manual_review("matching", {})


class TestAnswerStorage:
    """Tests for coerce_answer / stored_answer."""

    def test_coerce_by_type(self):
        assert coerce_answer("trueFalse", "true") == ("", None, True)
        assert coerce_answer("numerical", "5.05") == ("", 5.05, None)
        assert coerce_answer("essay", "Long text") == ("Long text", None, None)
        assert coerce_answer("numerical", "") == ("", None, None)

    def test_stored_answer_reads_typed_field(self):
        assert stored_answer({"question_type": "numerical", "user_numerical_answer": 3.0}) == 3.0
        assert stored_answer({"question_type": "trueFalse", "user_boolean_answer": False}) is False
        assert stored_answer({"question_type": "shortAnswer", "user_text_answer": ""}) is None

    def test_has_answer(self):
        assert has_answer(0)
        assert has_answer(False)
        assert not has_answer("  ")
