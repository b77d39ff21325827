"""
Domain errors

Every failure the API reports is one of these. The handlers registered in
main.py render them as {"success": False, "message": ..., **payload}.
"""


class QuizError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self) -> dict:
        return {}


class ValidationError(QuizError):
    status_code = 400


class CapacityExceeded(QuizError):
    status_code = 400

    def __init__(self, message: str, current_marks: int, remaining_marks: int):
        super().__init__(message)
        self.current_marks = current_marks
        self.remaining_marks = remaining_marks

    def payload(self) -> dict:
        return {
            "current_marks": self.current_marks,
            "remaining_marks": self.remaining_marks,
        }


class NotFound(QuizError):
    status_code = 404


class AuthenticationError(QuizError):
    status_code = 401


class StorageUnavailable(QuizError):
    """Database missing or failing. Read-only routes answer with their safe default body."""

    status_code = 503

    def __init__(self, message: str = "Storage unavailable"):
        super().__init__(message)
