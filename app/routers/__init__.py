from .enrollment import router as enrollment_router
from .practice_test import router as practice_test_router
from .quiz_attempt import router as quiz_attempt_router

routes = [
    enrollment_router,
    quiz_attempt_router,
    practice_test_router,
]
