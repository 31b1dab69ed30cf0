import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from rollcall.errors import DecodeError
from rollcall.models.attendance_model import OUTCOME_LATE, OUTCOME_PRESENT, AttendanceRecord
from rollcall.services.ledger import AlreadyExists
from rollcall.utils.time_utils import as_naive_utc, isoformat

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 300


class RejectReason(str, Enum):
    INVALID_CODE = "invalid_code"
    EXPIRED = "expired"
    NOT_ENROLLED = "not_enrolled"
    ALREADY_MARKED = "already_marked"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Accepted:
    record: AttendanceRecord

    accepted = True

    def to_dict(self):
        return {"success": True, "status": "accepted", "record": self.record.to_dict()}


@dataclass(frozen=True)
class Rejected:
    reason: RejectReason
    # Set for ALREADY_MARKED: when the original automatic record was made
    marked_at: Optional[datetime] = None

    accepted = False

    def to_dict(self):
        data = {"success": False, "status": "rejected", "reason": self.reason.value}
        if self.marked_at is not None:
            data["marked_at"] = isoformat(self.marked_at)
        return data


class RedemptionValidator:
    """Turns a scanned code plus a claimed identity into an attendance decision."""

    def __init__(self, codec, sessions, ledger, roster, grace_seconds=DEFAULT_GRACE_SECONDS):
        if grace_seconds < 0:
            raise ValueError("grace period cannot be negative")
        self.codec = codec
        self.sessions = sessions
        self.ledger = ledger
        self.roster = roster
        self.grace_period = timedelta(seconds=grace_seconds)

    def redeem(self, raw_payload, identity, at=None):
        """Validate one redemption attempt.

        Returns :class:`Accepted` or :class:`Rejected`. Only storage faults
        raise (:class:`rollcall.errors.StorageError`); retrying with the same
        inputs is safe.
        """
        at = as_naive_utc(at)

        try:
            session_id, nonce = self.codec.decode(raw_payload)
        except DecodeError:
            return self._reject(RejectReason.INVALID_CODE, identity)

        session = self.sessions.get(session_id, fresh=True)
        if session is None:
            # Indistinguishable from a tampered token on purpose
            return self._reject(RejectReason.INVALID_CODE, identity)

        # A frame rendered before the last rotation is stale even while the session is open
        if nonce != session.nonce:
            return self._reject(RejectReason.EXPIRED, identity, session_id)

        if not session.is_live(at):
            return self._reject(RejectReason.EXPIRED, identity, session_id)

        if not identity or not self.roster.is_enrolled(session.course_id, identity):
            return self._reject(RejectReason.NOT_ENROLLED, identity, session_id)

        outcome = self.outcome_for(session, at)
        result = self.ledger.check_and_insert_automatic(session.id, identity, outcome, at)
        if isinstance(result, AlreadyExists):
            return self._reject(
                RejectReason.ALREADY_MARKED, identity, session_id, marked_at=result.record.recorded_at
            )

        logger.info("Marked %s %s in session %s", identity, outcome, session.id)
        return Accepted(result.record)

    def outcome_for(self, session, at):
        if at <= session.created_at + self.grace_period:
            return OUTCOME_PRESENT
        return OUTCOME_LATE

    def _reject(self, reason, identity, session_id=None, marked_at=None):
        logger.info("Rejected redemption by %s for session %s: %s", identity, session_id or "?", reason)
        return Rejected(reason, marked_at=marked_at)
