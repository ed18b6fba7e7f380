# app/models/course.py
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)

    # Basic Info
    title = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)

    # 'course_lesson' for lesson courses, 'practice_test' for multi-module exams
    content_type = Column(String(50), nullable=False, default="course_lesson")
    status = Column(
        String(20), nullable=False, default="draft"
    )  # draft, published, archived

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

    @property
    def is_practice_test(self) -> bool:
        return self.content_type == "practice_test"

    def __repr__(self):
        return f"<Course(id={self.id}, title='{self.title}', type='{self.content_type}')>"
