"""
Models package initialization
Import all models and setup relationships
"""

from .course import Course
from .course_enrollment import Enrollment
from .lesson_content import LessonContent
from .module import LessonModule, Module, ModuleQuestion, QuizModule, QuizStrand
from .practice_test_attempt import PracticeTestAttempt
from .question import Question
from .quiz_attempt import QuizAttempt
from .quiz_snapshot import QuestionSnapshot

# Import and setup relationships
from .relations import setup_relationships
from .section import Section
from .user import User

# Setup all relationships after models are imported
setup_relationships()

# Make models available at package level
__all__ = [
    "Course",
    "Enrollment",
    "LessonContent",
    "LessonModule",
    "Module",
    "ModuleQuestion",
    "PracticeTestAttempt",
    "Question",
    "QuestionSnapshot",
    "QuizAttempt",
    "QuizModule",
    "QuizStrand",
    "Section",
    "User",
]
