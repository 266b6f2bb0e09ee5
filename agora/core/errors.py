from enum import Enum


class ErrorKind(int, Enum):
    """Membership error kinds; the value is the HTTP status the router returns."""

    INVALID_ARGUMENT = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL = 500


class MembershipError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return self.kind.value


class NotFoundError(MembershipError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(MembershipError):
    kind = ErrorKind.CONFLICT


class ForbiddenError(MembershipError):
    kind = ErrorKind.FORBIDDEN


class InvalidArgumentError(MembershipError):
    kind = ErrorKind.INVALID_ARGUMENT
