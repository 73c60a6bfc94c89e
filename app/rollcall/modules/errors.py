# app/rollcall/modules/errors.py

class RollcallError(Exception):
    """Base class for every error raised by the attendance workflow."""
    pass


# --- Precondition errors: the operation should not have been invoked ---

class PreconditionError(RollcallError):
    pass

class EmptyRoster(PreconditionError):
    def __init__(self, class_identifier: str):
        super().__init__(f"No students found in class '{class_identifier}'.")
        self.class_identifier = class_identifier

class ClassNotFound(PreconditionError):
    def __init__(self, class_identifier: str, reason: str = "unknown class"):
        super().__init__(f"Class '{class_identifier}' not found: {reason}")
        self.class_identifier = class_identifier
        self.reason = reason

class DepartmentNotFound(PreconditionError):
    def __init__(self, dept_code: str):
        super().__init__(f"Department '{dept_code}' not found.")
        self.dept_code = dept_code

class NoActiveSession(PreconditionError):
    pass

class NoMarkingSession(PreconditionError):
    pass

class SessionAlreadyStarted(PreconditionError):
    pass

class InvalidHour(PreconditionError):
    pass

class RecordValidationError(PreconditionError):
    """A commit payload failed validation before any network interaction."""
    pass


# --- State errors: state machine misuse, recoverable by re-checking state ---

class StateError(RollcallError):
    pass

class NoCurrentStudent(StateError):
    def __init__(self):
        super().__init__("Every student has been marked; there is no current student.")

class NothingToUndo(StateError):
    def __init__(self):
        super().__init__("No student has been marked yet; nothing to undo.")

class SessionComplete(StateError):
    pass

class ReviewNotStarted(StateError):
    pass


# --- Data integrity errors: a hand-off contract was violated ---

class DataIntegrityError(RollcallError):
    pass

class IncompleteSession(DataIntegrityError):
    def __init__(self, unmarked_ids):
        self.unmarked_ids = tuple(unmarked_ids)
        super().__init__(f"{len(self.unmarked_ids)} student(s) have not been marked yet.")

class StudentNotFound(DataIntegrityError):
    def __init__(self, student_id: str):
        super().__init__(f"Student '{student_id}' is not part of this session.")
        self.student_id = student_id

class DuplicateStudent(DataIntegrityError):
    def __init__(self, student_id: str):
        super().__init__(f"Student '{student_id}' appears more than once in the roster.")
        self.student_id = student_id

class CorruptDraft(DataIntegrityError):
    pass


# --- Boundary errors: reported by an external collaborator ---

class BoundaryError(RollcallError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

class CommitRejected(BoundaryError):
    pass

class RosterUnavailable(BoundaryError):
    pass

class InvalidCredentials(BoundaryError):
    pass
