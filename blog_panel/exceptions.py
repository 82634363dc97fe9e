"""
Domain error hierarchy.

Services raise these; the handlers registered in ``error_handlers`` turn
them into ``{"message", "status", "error"}`` JSON responses.  The message
format mirrors the one clients of the panel already parse::

    "User with 42 was not successfully fulfilled, user_not_found"
"""

# Error cases
USER_NOT_FOUND = "user_not_found"
USER_ALREADY_EXIST = "user_already_exist"
PASSWORD_NOT_MATCH = "password_not_match"
ROLE_NOT_FOUND = "role_not_found"
ROLE_ALREADY_EXIST = "role_already_exist"
POST_NOT_FOUND = "post_not_found"
POST_ALREADY_EXISTS = "post_already_exists"
SESSION_NOT_FOUND = "session_not_found"
TOKEN_NOT_FOUND = "token_not_found"
TOKEN_EXPIRED = "token_expired"
TOKEN_INVALID = "token_invalid"
PERMISSION_NOT_FOUND = "permission_not_found"
USER_WITHOUT_ENOUGH_PERMISSION = "user_without_enough_permission"
RESOURCE_NOT_FOUND = "resource_not_found"
CATEGORY_ALREADY_EXISTS = "category_already_exists"


class AppError(Exception):
    """Base class for every error the API reports to clients."""

    status_code: int = 404

    def __init__(
        self,
        error_type: str,
        error_case: str,
        value=None,
        status_code: int | None = None,
    ) -> None:
        self.error_type = error_type
        self.error_case = error_case
        self.value = value
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.value is None:
            return f"{self.error_type} was not successfully fulfilled, {self.error_case}"
        return f"{self.error_type} with {self.value} was not successfully fulfilled, {self.error_case}"

    def to_response(self) -> dict:
        return {
            "message": self.message,
            "status": self.status_code,
            "error": self.error_case,
        }


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class AuthenticationError(AppError):
    status_code = 401


class PermissionDeniedError(AppError):
    status_code = 403
