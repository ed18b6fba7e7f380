# app/models/module.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Module(Base):
    """
    Shared base for every module in a section.

    Stored in a single table and discriminated by ``module_type``; loading a
    section's modules yields ``LessonModule`` / ``QuizModule`` instances.
    """

    __tablename__ = "modules"

    id = Column(Integer, primary_key=True, index=True)
    module_type = Column(String(20), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True, default="")

    section_id = Column(Integer, ForeignKey("sections.id"), nullable=True, index=True)
    position = Column(Integer, default=1, nullable=False)

    status = Column(
        String(20), nullable=False, default="draft"
    )  # draft, published, archived

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __mapper_args__ = {
        "polymorphic_on": module_type,
        "polymorphic_identity": "module",
    }

    def __repr__(self):
        return f"<{type(self).__name__}(id={self.id}, title='{self.title}')>"


class LessonModule(Module):
    progress_bar = Column(Boolean, default=False, nullable=True)

    contents = relationship(
        "LessonContent",
        back_populates="module",
        order_by="LessonContent.position",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"polymorphic_identity": "lesson"}


class QuizModule(Module):
    # Quiz settings
    time_limit_minutes = Column(Integer, nullable=True)  # null = untimed
    passing_score_percentage = Column(Integer, nullable=True, default=0)
    max_attempts = Column(Integer, nullable=True, default=-1)  # -1 = unlimited
    question_shuffle = Column(Boolean, nullable=True, default=False)
    shuffle_options = Column(Boolean, nullable=True, default=False)
    timer_end_behavior = Column(
        String(30), nullable=True, default="auto-submit"
    )  # auto-submit, strict-zero-score
    direction = Column(Text, nullable=True, default="")

    # SAT-style modules take their questions from strands instead of question_links
    is_sat = Column(Boolean, nullable=True, default=False)

    question_links = relationship(
        "ModuleQuestion",
        foreign_keys="ModuleQuestion.module_id",
        order_by="ModuleQuestion.position",
        cascade="all, delete-orphan",
    )
    strands = relationship(
        "QuizStrand",
        back_populates="module",
        order_by="QuizStrand.position",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"polymorphic_identity": "quiz"}

    @property
    def all_question_links(self):
        """Every linked question, strand questions flattened in strand order."""
        if self.is_sat:
            return [link for strand in self.strands for link in strand.question_links]
        return list(self.question_links)

    @property
    def time_limit_seconds(self) -> int:
        return (self.time_limit_minutes or 0) * 60

    def settings_snapshot(self) -> dict:
        return {
            "title": self.title,
            "description": self.description or "",
            "max_attempts": self.max_attempts if self.max_attempts is not None else -1,
            "time_limit_minutes": self.time_limit_minutes,
            "passing_score_percentage": self.passing_score_percentage or 0,
            "question_shuffle": bool(self.question_shuffle),
            "shuffle_options": bool(self.shuffle_options),
            "timer_end_behavior": self.timer_end_behavior or "auto-submit",
        }


class QuizStrand(Base):
    """A named group of questions inside an SAT-style quiz module."""

    __tablename__ = "quiz_strands"

    id = Column(Integer, primary_key=True, index=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    shuffle_questions = Column(Boolean, default=False, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    module = relationship("QuizModule", back_populates="strands")
    question_links = relationship(
        "ModuleQuestion",
        foreign_keys="ModuleQuestion.strand_id",
        order_by="ModuleQuestion.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<QuizStrand(id={self.id}, name='{self.name}')>"


class ModuleQuestion(Base):
    """
    Link between a quiz module (or one of its strands) and a bank question.
    question_id goes null when the bank question is deleted.
    """

    __tablename__ = "module_questions"

    id = Column(Integer, primary_key=True, index=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=True, index=True)
    strand_id = Column(
        Integer, ForeignKey("quiz_strands.id"), nullable=True, index=True
    )
    question_id = Column(
        Integer, ForeignKey("questions.id", ondelete="SET NULL"), nullable=True
    )
    points = Column(Integer, default=1, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    question = relationship("Question")

    def __repr__(self):
        return f"<ModuleQuestion(id={self.id}, question_id={self.question_id}, points={self.points})>"
