# app/models/lesson_content.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class LessonContent(Base):
    __tablename__ = "lesson_contents"

    id = Column(Integer, primary_key=True, index=True)

    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False, index=True)

    # Content Type: video, text, file, link ...
    content_type = Column(String(50), nullable=False, default="text")
    title = Column(String(255), nullable=True)
    body = Column(Text, nullable=True)

    # Order/Position in the lesson module
    position = Column(Integer, default=0, nullable=False)

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

    module = relationship("LessonModule", back_populates="contents")

    def __repr__(self):
        return f"<LessonContent(id={self.id}, type='{self.content_type}', module_id={self.module_id})>"
