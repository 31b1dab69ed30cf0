"""Attendance engine services and the container that wires them together."""

from rollcall.services.ledger import AttendanceLedger
from rollcall.services.locks import KeyedLockTable
from rollcall.services.reconciliation import ReconciliationEngine
from rollcall.services.roster import StaticRoster
from rollcall.services.session_store import SessionStore
from rollcall.services.validator import Accepted, RedemptionValidator, Rejected, RejectReason
from rollcall.utils.jwt_utils import TokenCodec


class AttendanceEngine:
    """One codec, session store, ledger, validator and reconciler sharing a lock table."""

    def __init__(
        self,
        secret,
        roster,
        rotation_enabled=True,
        rotation_seconds=10,
        grace_seconds=300,
    ):
        self.locks = KeyedLockTable()
        self.codec = TokenCodec(secret)
        self.roster = roster
        self.sessions = SessionStore(
            self.codec,
            rotation_enabled=rotation_enabled,
            rotation_seconds=rotation_seconds,
            locks=self.locks,
        )
        self.ledger = AttendanceLedger(locks=self.locks)
        self.validator = RedemptionValidator(
            self.codec, self.sessions, self.ledger, roster, grace_seconds=grace_seconds
        )
        self.reconciler = ReconciliationEngine(self.sessions, self.ledger, roster, locks=self.locks)

    @classmethod
    def from_config(cls, config, roster=None):
        if roster is None:
            roster = StaticRoster(config.get("COURSE_ROSTERS") or {})
        return cls(
            secret=config["JWT_SECRET"],
            roster=roster,
            rotation_enabled=config.get("TOKEN_ROTATION_ENABLED", True),
            rotation_seconds=config.get("TOKEN_ROTATION_SECONDS", 10),
            grace_seconds=config.get("GRACE_PERIOD_SECONDS", 300),
        )

    def redeem(self, raw_payload, identity, at=None):
        return self.validator.redeem(raw_payload, identity, at)


__all__ = [
    "Accepted",
    "AttendanceEngine",
    "AttendanceLedger",
    "KeyedLockTable",
    "ReconciliationEngine",
    "RedemptionValidator",
    "Rejected",
    "RejectReason",
    "SessionStore",
    "StaticRoster",
]
