# app/models/quiz_snapshot.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from app.core.database import Base, JSONType


class QuestionSnapshot(Base):
    """
    Frozen copy of a quiz module's questions and answer key.

    A rebuild never touches an existing row: it inserts the next ``version``
    for the module, and attempts keep pointing at the row they started on.
    """

    __tablename__ = "quiz_snapshots"
    __table_args__ = (UniqueConstraint("module_id", "version"),)

    id = Column(Integer, primary_key=True, index=True)

    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False, index=True)
    section_id = Column(Integer, ForeignKey("sections.id"), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    # sha256 over the live settings + question links the version was built from
    source_fingerprint = Column(String(64), nullable=False)

    settings = Column(JSONType, nullable=False, default=dict)
    questions = Column(JSONType, nullable=False, default=list)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    @property
    def total_points(self) -> int:
        return sum(entry.get("points_possible", 0) for entry in self.questions or [])

    def entry_for(self, question_id):
        for entry in self.questions or []:
            if entry.get("question_id") == question_id:
                return entry
        return None

    def __repr__(self):
        return f"<QuestionSnapshot(id={self.id}, module_id={self.module_id}, version={self.version})>"
