"""Exception types raised by the attendance engine.

Routine outcomes of a redemption (expired, already marked, ...) are not
exceptions; see ``rollcall.services.validator.Rejected``.
"""


class RollcallError(Exception):
    """Base class for engine errors."""


class DecodeError(RollcallError):
    """The token is malformed or its integrity tag does not match.

    Both cases deliberately share one error so callers cannot tell them apart.
    """

    def __init__(self):
        super().__init__("invalid attendance code")


class ScheduleConflict(RollcallError):
    def __init__(self, instructor_id, slot_id, existing_session_id):
        self.instructor_id = instructor_id
        self.slot_id = slot_id
        self.existing_session_id = existing_session_id
        super().__init__(
            f"{instructor_id} already has a live session ({existing_session_id}) for slot {slot_id}"
        )


class SessionNotFound(RollcallError):
    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"unknown session {session_id}")


class InvalidOutcome(RollcallError, ValueError):
    def __init__(self, outcome):
        self.outcome = outcome
        super().__init__(f"unsupported attendance outcome {outcome!r}")


class StorageError(RollcallError):
    """The backing store failed; the operation left no partial state and may be retried."""
