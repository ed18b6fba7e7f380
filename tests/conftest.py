# tests/conftest.py
"""
Pytest Configuration and Fixtures
"""

import itertools
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_FILE"] = "logs/test.log"

import pytest
from fastapi.testclient import TestClient

from app.core.database import Base, SessionLocal, engine, get_db
from app.core.security import Principal, jwt_manager, resolve_capabilities
from app.models import (
    Course,
    Enrollment,
    LessonContent,
    LessonModule,
    ModuleQuestion,
    Question,
    QuizModule,
    QuizStrand,
    Section,
    User,
)

_counter = itertools.count(1)


# ==================== Database ====================


@pytest.fixture
def db():
    """Fresh in-memory schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """API client sharing the test session."""
    from main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {jwt_manager.create_access_token(user)}"}


def principal_for(user: User) -> Principal:
    return Principal(user=user, capabilities=resolve_capabilities(user))


# ==================== Builders ====================


def make_user(db, role="student", name=None) -> User:
    user = User(full_name=name or f"{role.title()} {next(_counter)}", role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_course(db, practice_test=False) -> Course:
    course = Course(
        title=f"Course {next(_counter)}",
        content_type="practice_test" if practice_test else "course_lesson",
        status="published",
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def make_section(db, course, position=1, score_group=None, title=None) -> Section:
    section = Section(
        course_id=course.id,
        title=title or f"Section {position}",
        position=position,
        score_group=score_group,
    )
    db.add(section)
    db.commit()
    db.refresh(section)
    return section


def make_question(db, question_type="multipleChoice", **fields) -> Question:
    defaults = {
        "multipleChoice": {
            "text_raw": "Capital of France?",
            "options": [
                {"text_raw": "Paris", "text_html": "<p>Paris</p>", "is_correct": True},
                {"text_raw": "Rome", "text_html": "<p>Rome</p>", "is_correct": False},
            ],
        },
        "trueFalse": {"text_raw": "The sky is blue.", "true_false_answer": True},
        "numerical": {
            "text_raw": "What is 10 / 2?",
            "numerical_answer": 5.0,
            "numerical_tolerance": 0.1,
        },
        "shortAnswer": {
            "text_raw": "Name the capital of France.",
            "correct_answers": [{"answer": "Paris"}],
        },
        "essay": {
            "text_raw": "Discuss the French Revolution.",
            "requires_manual_grading": True,
        },
    }.get(question_type, {"text_raw": "Untyped question"})
    defaults.update(fields)
    question = Question(question_type=question_type, **defaults)
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


def make_quiz(db, section, questions, position=1, **settings) -> QuizModule:
    """Quiz module linking ``questions``, a list of (Question, points) pairs."""
    module = QuizModule(
        title=settings.pop("title", f"Quiz {next(_counter)}"),
        section_id=section.id,
        position=position,
        status="published",
        **settings,
    )
    db.add(module)
    db.flush()
    for index, (question, points) in enumerate(questions):
        db.add(
            ModuleQuestion(
                module_id=module.id,
                question_id=question.id,
                points=points,
                position=index,
            )
        )
    db.commit()
    db.refresh(module)
    return module


def make_sat_quiz(db, section, strands, position=1, **settings) -> QuizModule:
    """SAT quiz whose strands are lists of (Question, points) pairs."""
    module = QuizModule(
        title=f"SAT Quiz {next(_counter)}",
        section_id=section.id,
        position=position,
        status="published",
        is_sat=True,
        **settings,
    )
    db.add(module)
    db.flush()
    for strand_index, links in enumerate(strands):
        strand = QuizStrand(
            module_id=module.id, name=f"Strand {strand_index + 1}", position=strand_index
        )
        db.add(strand)
        db.flush()
        for index, (question, points) in enumerate(links):
            db.add(
                ModuleQuestion(
                    strand_id=strand.id,
                    question_id=question.id,
                    points=points,
                    position=index,
                )
            )
    db.commit()
    db.refresh(module)
    return module


def make_lesson(db, section, content_count, position=1) -> LessonModule:
    module = LessonModule(
        title=f"Lesson {next(_counter)}",
        section_id=section.id,
        position=position,
        status="published",
    )
    db.add(module)
    db.flush()
    for index in range(content_count):
        db.add(
            LessonContent(
                module_id=module.id,
                content_type="text",
                title=f"Page {index + 1}",
                body="...",
                position=index,
            )
        )
    db.commit()
    db.refresh(module)
    return module


def make_enrollment(db, user, course) -> Enrollment:
    enrollment = Enrollment(
        user_id=user.id,
        course_id=course.id,
        status="enrolled",
        completed_modules=[],
        completed_content_ids=[],
    )
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    return enrollment


# ==================== Common graphs ====================


@pytest.fixture
def student(db):
    return make_user(db, "student", "Sam Student")


@pytest.fixture
def teacher(db):
    return make_user(db, "teacher", "Tina Teacher")


@pytest.fixture
def admin(db):
    return make_user(db, "admin", "Ada Admin")


@pytest.fixture
def quiz_course(db, student):
    """Lesson course with one quiz: a 2-point MC question and a 5-point essay."""
    course = make_course(db)
    section = make_section(db, course, 1)
    mc = make_question(db, "multipleChoice")
    essay = make_question(db, "essay")
    module = make_quiz(
        db, section, [(mc, 2), (essay, 5)], passing_score_percentage=50
    )
    enrollment = make_enrollment(db, student, course)
    return {
        "course": course,
        "section": section,
        "module": module,
        "mc": mc,
        "essay": essay,
        "enrollment": enrollment,
    }
