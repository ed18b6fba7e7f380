# app/models/section.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from app.core.database import Base

# Scored groups a practice-test section can feed
SCORE_GROUP_READING_WRITING = "reading_writing"
SCORE_GROUP_MATH = "math"
SCORE_GROUPS = (SCORE_GROUP_READING_WRITING, SCORE_GROUP_MATH)


class Section(Base):
    __tablename__ = "sections"
    __table_args__ = (UniqueConstraint("course_id", "position"),)

    id = Column(Integer, primary_key=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Course relationship
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)

    # Order/Position in course
    position = Column(Integer, default=1, nullable=False)

    # Which scaled-score group this section feeds (null = unscored)
    score_group = Column(String(30), nullable=True)

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
        return f"<Section(id={self.id}, title='{self.title}', course_id={self.course_id})>"
