"""
Typed errors raised by the grading services.

Every error carries an HTTP status code so the handler registered in main.py
can turn it into a structured JSON failure without the services knowing
anything about HTTP.
"""


class AssessmentException(Exception):
    kind = "assessment_error"

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(AssessmentException):
    kind = "not_found"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, 404)


class UnauthorizedError(AssessmentException):
    kind = "unauthorized"

    def __init__(self, message: str = "You do not have access to this resource"):
        super().__init__(message, 403)


class AlreadyFinalizedError(AssessmentException):
    kind = "already_finalized"

    def __init__(self, message: str = "Attempt has already been finalized"):
        super().__init__(message, 409)


class InvalidStateError(AssessmentException):
    kind = "invalid_state"

    def __init__(self, message: str):
        super().__init__(message, 400)


class DataIntegrityError(AssessmentException):
    kind = "data_integrity"

    def __init__(self, message: str):
        super().__init__(message, 500)


class NoGradableQuestionsError(DataIntegrityError):
    kind = "no_gradable_questions"

    def __init__(self, module_id: int):
        self.module_id = module_id
        super().__init__(
            f"Quiz module {module_id} has no gradable questions after "
            f"removing deleted question links"
        )


class PayloadValidationError(AssessmentException):
    kind = "validation_error"

    def __init__(self, message: str):
        super().__init__(message, 422)
