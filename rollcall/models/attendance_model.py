from sqlalchemy import text

from rollcall.models import db
from rollcall.utils.time_utils import isoformat

OUTCOME_PRESENT = "present"
OUTCOME_LATE = "late"
OUTCOME_ABSENT = "absent"
OUTCOMES = (OUTCOME_PRESENT, OUTCOME_LATE, OUTCOME_ABSENT)

SOURCE_AUTOMATIC = "automatic"
SOURCE_MANUAL = "manual"


class AttendanceRecord(db.Model):
    """Append-only ledger row.

    Corrections are new rows pointing back through ``supersedes_id``; rows are
    never edited in place. The integer id doubles as insertion order.
    """

    __tablename__ = "attendance_record"
    __table_args__ = (
        db.Index("ix_record_session_identity", "session_id", "identity"),
        # At most one automatic record per (session, identity)
        db.Index(
            "uq_record_automatic_once",
            "session_id",
            "identity",
            unique=True,
            sqlite_where=text("source = 'automatic'"),
            postgresql_where=text("source = 'automatic'"),
        ),
        db.CheckConstraint(
            "outcome IN ('present', 'late', 'absent')", name="ck_record_outcome"
        ),
        db.CheckConstraint(
            "source IN ('automatic', 'manual')", name="ck_record_source"
        ),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    session_id = db.Column(db.String(32), db.ForeignKey("attendance_session.id"), nullable=False)
    identity = db.Column(db.String(120), nullable=False)
    outcome = db.Column(db.String(10), nullable=False)
    source = db.Column(db.String(10), nullable=False)
    recorded_at = db.Column(db.DateTime, nullable=False, index=True)
    recorder = db.Column(db.String(120), nullable=False)
    supersedes_id = db.Column(db.Integer, db.ForeignKey("attendance_record.id"), nullable=True)

    @property
    def is_automatic(self):
        return self.source == SOURCE_AUTOMATIC

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "identity": self.identity,
            "outcome": self.outcome,
            "source": self.source,
            "recorded_at": isoformat(self.recorded_at),
            "recorder": self.recorder,
            "supersedes": self.supersedes_id,
        }

    def __repr__(self):
        return f"<AttendanceRecord {self.id} {self.session_id}:{self.identity} {self.source}/{self.outcome}>"
