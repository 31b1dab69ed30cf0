import logging

from rollcall.errors import InvalidOutcome
from rollcall.models.attendance_model import (
    OUTCOME_ABSENT,
    OUTCOME_LATE,
    OUTCOME_PRESENT,
    OUTCOMES,
)
from rollcall.services.locks import KeyedLockTable
from rollcall.utils.time_utils import as_naive_utc, isoformat

logger = logging.getLogger(__name__)

STATUS_UNMARKED = "unmarked"


def latest_per_identity(records):
    """Resolve each identity to its most recent record.

    ``records`` must already be ordered by recorded time then insertion order,
    as ledger queries are, so the last one seen wins.
    """
    latest = {}
    for record in records:
        latest[record.identity] = record
    return latest


class ReconciliationEngine:
    """Merges instructor corrections into the ledger without rewriting history."""

    def __init__(self, sessions, ledger, roster, locks=None):
        self.sessions = sessions
        self.ledger = ledger
        self.roster = roster
        self._locks = locks if locks is not None else KeyedLockTable()

    def apply_manual(self, session_id, identity, outcome, recorder, at=None):
        """Record a manual outcome for ``identity``.

        If the identity already has an automatic record in the session the new
        row points back at it; otherwise it stands alone.
        """
        if outcome not in OUTCOMES:
            raise InvalidOutcome(outcome)
        if not identity:
            raise ValueError("identity is required")
        at = as_naive_utc(at)

        # Same lock as token rotation so both are ordered per session
        with self._locks.hold(("session", session_id)):
            session = self.sessions.require(session_id)
            automatic = self.ledger.find_automatic(session.id, identity)
            record = self.ledger.append_manual(
                session.id, identity, outcome, recorder, at, supersedes=automatic
            )

        if automatic is not None:
            logger.info(
                "%s overrode %s for %s in session %s: %s -> %s",
                recorder, automatic.id, identity, session.id, automatic.outcome, outcome,
            )
        else:
            logger.info("%s marked %s %s in session %s", recorder, identity, outcome, session.id)
        return record

    def effective_status(self, session_id):
        """identity -> latest record for the session (the reporting view)."""
        self.sessions.require(session_id)
        return latest_per_identity(self.ledger.query(session_id=session_id))

    def roster_status(self, session_id):
        """One row per enrolled member plus anyone recorded but not enrolled."""
        session = self.sessions.require(session_id)
        effective = latest_per_identity(self.ledger.query(session_id=session.id))

        rows = []
        for identity in self.roster.members(session.course_id):
            record = effective.pop(identity, None)
            rows.append(self._row(identity, record, enrolled=True))
        for identity in sorted(effective):
            rows.append(self._row(identity, effective[identity], enrolled=False))
        return rows

    def summary(self, session_id):
        rows = self.roster_status(session_id)
        enrolled = [row for row in rows if row["enrolled"]]
        counts = {status: 0 for status in (OUTCOME_PRESENT, OUTCOME_LATE, OUTCOME_ABSENT, STATUS_UNMARKED)}
        for row in enrolled:
            counts[row["status"]] += 1

        attended = counts[OUTCOME_PRESENT] + counts[OUTCOME_LATE]
        rate = round(attended * 100 / len(enrolled)) if enrolled else 0
        return {
            "session_id": session_id,
            "enrolled": len(enrolled),
            **counts,
            "attendance_rate": rate,
        }

    @staticmethod
    def _row(identity, record, enrolled):
        return {
            "identity": identity,
            "enrolled": enrolled,
            "status": record.outcome if record is not None else STATUS_UNMARKED,
            "source": record.source if record is not None else None,
            "recorded_at": isoformat(record.recorded_at) if record is not None else None,
            "record_id": record.id if record is not None else None,
        }
