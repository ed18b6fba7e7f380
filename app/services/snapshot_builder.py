# app/services/snapshot_builder.py
import hashlib
import json
import logging
import random
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NoGradableQuestionsError, NotFoundError
from app.models.module import ModuleQuestion, QuizModule
from app.models.quiz_snapshot import QuestionSnapshot

logger = logging.getLogger(__name__)


def link_points(link: ModuleQuestion) -> int:
    """Point value of a question link; unset or non-positive counts as the default."""
    if link.points and link.points > 0:
        return link.points
    return settings.default_question_points


def snapshot_entry(link: ModuleQuestion) -> Optional[dict]:
    """Map a live question link onto a frozen snapshot entry, None if dangling."""
    question = link.question
    if question is None:
        return None

    entry = {
        "question_id": question.id,
        "question_type": question.question_type,
        "question_text_raw": question.text_raw or "",
        "question_text_html": question.text_html or question.text_raw or "",
        "question_context_raw": question.context_raw or "",
        "question_context_html": question.context_html or question.context_raw or "",
        "options": [
            {
                "option_text_html": opt.get("text_html") or opt.get("text_raw") or "",
                "option_text_raw": opt.get("text_raw") or "",
                "is_correct": bool(opt.get("is_correct")),
            }
            for opt in question.options or []
        ],
        "true_false_answer": None,
        "correct_answers": [],
        "numerical_answer": None,
        "requires_manual_grading": bool(question.requires_manual_grading),
        "points_possible": link_points(link),
        "feedback": question.feedback or "",
        "case_sensitive": bool(question.case_sensitive),
    }

    if question.question_type == "trueFalse" and question.true_false_answer is not None:
        entry["true_false_answer"] = bool(question.true_false_answer)
    elif question.question_type in ("shortAnswer", "essay"):
        entry["correct_answers"] = [
            {"answer": ans.get("answer"), "answer_html": ans.get("answer_html") or ""}
            for ans in question.correct_answers or []
        ]
    elif question.question_type == "numerical" and question.numerical_answer is not None:
        entry["numerical_answer"] = {
            "answer": question.numerical_answer,
            "tolerance": question.numerical_tolerance or 0,
        }
    return entry


class SnapshotBuilder:
    """
    Builds and versions QuestionSnapshot rows for quiz modules.

    Writes are flushed, never committed: callers run the builder inside their
    own ``atomic()`` block.
    """

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng or random.Random()

    def get_latest(self, module_id: int) -> Optional[QuestionSnapshot]:
        return (
            self.db.query(QuestionSnapshot)
            .filter(QuestionSnapshot.module_id == module_id)
            .order_by(QuestionSnapshot.version.desc())
            .first()
        )

    def get_latest_or_404(self, module_id: int) -> QuestionSnapshot:
        snapshot = self.get_latest(module_id)
        if not snapshot:
            raise NotFoundError(
                "Quiz snapshot not found. The quiz may not have been started yet."
            )
        return snapshot

    def _question_groups(self, module: QuizModule) -> List[Tuple[bool, List[dict]]]:
        """
        Ordered (shuffle_flag, entries) groups in source order.
        Standard modules form one group; SAT modules one group per strand.
        """
        if module.is_sat:
            sources = [
                (bool(strand.shuffle_questions), strand.question_links)
                for strand in module.strands
            ]
        else:
            sources = [(bool(module.question_shuffle), module.question_links)]

        groups = []
        for shuffle, links in sources:
            entries = []
            for link in links:
                entry = snapshot_entry(link)
                if entry is None:
                    logger.warning(
                        f"Skipping question link {link.id} on module {module.id}: "
                        f"source question was deleted"
                    )
                    continue
                entries.append(entry)
            groups.append((shuffle, entries))
        return groups

    @staticmethod
    def fingerprint(module_settings: dict, groups: List[Tuple[bool, List[dict]]]) -> str:
        payload = json.dumps(
            {"settings": module_settings, "groups": groups},
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def ensure_snapshot(self, module: QuizModule, rebuild: bool = False) -> QuestionSnapshot:
        """
        Return the snapshot new attempts of ``module`` should pin.

        The latest version is reused unless ``rebuild`` is set and the module's
        live content no longer matches it, in which case the next version is
        inserted. Existing versions are never modified.
        """
        module_settings = module.settings_snapshot()
        groups = self._question_groups(module)
        source_fingerprint = self.fingerprint(module_settings, groups)

        latest = self.get_latest(module.id)
        if latest and (not rebuild or latest.source_fingerprint == source_fingerprint):
            return latest

        questions = []
        for shuffle, entries in groups:
            entries = list(entries)
            if shuffle:
                self.rng.shuffle(entries)
            questions.extend(entries)

        if not questions:
            raise NoGradableQuestionsError(module.id)

        next_version = (
            self.db.query(func.max(QuestionSnapshot.version))
            .filter(QuestionSnapshot.module_id == module.id)
            .scalar()
            or 0
        ) + 1

        snapshot = QuestionSnapshot(
            module_id=module.id,
            section_id=module.section_id,
            version=next_version,
            source_fingerprint=source_fingerprint,
            settings=module_settings,
            questions=questions,
        )
        self.db.add(snapshot)
        self.db.flush()

        logger.info(
            f"Built snapshot v{next_version} for module {module.id} "
            f"with {len(questions)} questions"
        )
        return snapshot
