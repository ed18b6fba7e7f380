# app/models/question.py
from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.sql import func

from app.core.database import Base, JSONType

QUESTION_TYPES = ("multipleChoice", "trueFalse", "shortAnswer", "numerical", "essay")


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)

    title = Column(String(255), nullable=True)
    question_type = Column(String(30), nullable=False, index=True)

    # Question body, raw markup plus server-rendered html
    text_raw = Column(Text, nullable=False)
    text_html = Column(Text, nullable=True)
    context_raw = Column(Text, nullable=True, default="")
    context_html = Column(Text, nullable=True, default="")

    # multipleChoice: [{"text_raw": "...", "text_html": "...", "is_correct": bool}]
    options = Column(JSONType, nullable=True)
    # trueFalse
    true_false_answer = Column(Boolean, nullable=True)
    # shortAnswer / essay: [{"answer": "...", "answer_html": "..."}]
    correct_answers = Column(JSONType, nullable=True)
    # numerical
    numerical_answer = Column(Float, nullable=True)
    numerical_tolerance = Column(Float, nullable=True, default=0)

    requires_manual_grading = Column(Boolean, default=False, nullable=False)
    case_sensitive = Column(Boolean, default=False, nullable=False)
    feedback = Column(Text, nullable=True, default="")

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<Question(id={self.id}, type='{self.question_type}')>"
