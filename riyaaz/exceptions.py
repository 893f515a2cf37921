# riyaaz/exceptions.py
"""Errors raised by the riyaaz services; views map ``kind`` to an HTTP status."""


class RiyaazError(Exception):
    kind = "error"
    status_code = 400
    default_message = "Request rejected."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind}


class NotEnrolled(RiyaazError):
    kind = "not_enrolled"
    status_code = 403
    default_message = "Not enrolled in this classroom."


class NotClassroomOwner(RiyaazError):
    kind = "not_classroom_owner"
    status_code = 403
    default_message = "Only the classroom teacher can do this."


class ClassroomNotFound(RiyaazError):
    kind = "classroom_not_found"
    status_code = 404
    default_message = "Classroom not found."


class AssignmentNotFound(RiyaazError):
    kind = "assignment_not_found"
    status_code = 404
    default_message = "Assignment not found."


class AlreadyEnrolled(RiyaazError):
    kind = "already_enrolled"
    default_message = "Already enrolled in this classroom."


class AlreadySubmitted(RiyaazError):
    kind = "already_submitted"
    default_message = "Already submitted."


class InsufficientPoints(RiyaazError):
    kind = "insufficient_points"

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"You need {required} points to mend a streak. "
            f"You have {available} available points."
        )

    def as_dict(self) -> dict:
        d = super().as_dict()
        d.update({"required": self.required, "available": self.available})
        return d


class DateAlreadyLogged(RiyaazError):
    kind = "date_already_logged"
    default_message = "Already practiced on this date."


class InvalidMendDate(RiyaazError):
    kind = "invalid_mend_date"
    default_message = "Can only mend past missed days."


class InvalidPracticeDate(RiyaazError):
    kind = "invalid_practice_date"
    default_message = "Cannot log riyaaz for future dates."


class Unauthorized(RiyaazError):
    kind = "unauthorized"
    status_code = 401
    default_message = "X-User-Id header (or user_id) is required."


class InvalidTimeZone(RiyaazError):
    kind = "invalid_tz"
    default_message = "invalid tz."


class OwnerCannotJoin(RiyaazError):
    kind = "owner_cannot_join"
    default_message = "The classroom teacher cannot enroll as a student."


class StudentNotEnrolled(RiyaazError):
    kind = "student_not_enrolled"
    status_code = 404
    default_message = "Student not enrolled."


class JoinCodeUnavailable(RiyaazError):
    kind = "join_code_unavailable"
    status_code = 503
    default_message = "Could not allocate a unique join code; try again."
