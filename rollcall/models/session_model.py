import secrets
from datetime import timedelta

from rollcall.models import db
from rollcall.utils.time_utils import isoformat

STATE_OPEN = "open"
STATE_CLOSED = "closed"
STATE_REVOKED = "revoked"


def new_session_id():
    return secrets.token_urlsafe(12)


def new_nonce():
    return secrets.token_urlsafe(9)


class AttendanceSession(db.Model):
    """One instructor-opened attendance window. Never deleted; kept for audit."""

    __tablename__ = "attendance_session"
    __table_args__ = (
        db.CheckConstraint("expires_at > created_at", name="ck_session_expiry_after_creation"),
        db.Index("ix_session_instructor_slot", "instructor_id", "slot_id"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_session_id)
    course_id = db.Column(db.String(50), nullable=False)
    slot_id = db.Column(db.String(50), nullable=False)
    venue = db.Column(db.String(120), nullable=False, default="")
    instructor_id = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime, nullable=True)
    nonce = db.Column(db.String(32), nullable=False, default=new_nonce)
    nonce_issued_at = db.Column(db.DateTime, nullable=False)

    def is_live(self, at):
        return not self.revoked and self.created_at <= at < self.expires_at

    def state(self, at):
        # Closed and revoked are both terminal; redemption only looks at is_live
        if self.revoked:
            return STATE_REVOKED
        if self.is_live(at):
            return STATE_OPEN
        return STATE_CLOSED

    def time_remaining(self, at):
        if not self.is_live(at):
            return 0
        return int((self.expires_at - at) / timedelta(seconds=1))

    def to_dict(self, at=None):
        data = {
            "id": self.id,
            "course_id": self.course_id,
            "slot_id": self.slot_id,
            "venue": self.venue,
            "instructor_id": self.instructor_id,
            "created_at": isoformat(self.created_at),
            "expires_at": isoformat(self.expires_at),
            "revoked": self.revoked,
        }
        if at is not None:
            data["state"] = self.state(at)
            data["time_remaining"] = self.time_remaining(at)
        return data

    def __repr__(self):
        return f"<AttendanceSession {self.id} {self.course_id}/{self.slot_id}>"
