import logging
from datetime import timedelta

from sqlalchemy import select

from rollcall.errors import ScheduleConflict, SessionNotFound
from rollcall.models import db
from rollcall.models.session_model import AttendanceSession, new_nonce
from rollcall.services import storage
from rollcall.services.locks import KeyedLockTable
from rollcall.utils.time_utils import as_naive_utc

logger = logging.getLogger(__name__)

DEFAULT_ROTATION_SECONDS = 10


class SessionStore:
    """Owns the lifecycle of attendance sessions.

    Expiry is never written: a session is open while ``created_at <= at <
    expires_at`` and it has not been revoked by :meth:`stop`.
    """

    def __init__(self, codec, rotation_enabled=True, rotation_seconds=DEFAULT_ROTATION_SECONDS, locks=None):
        if rotation_seconds <= 0:
            raise ValueError("rotation interval must be positive")
        self.codec = codec
        self.rotation_enabled = rotation_enabled
        self.rotation_interval = timedelta(seconds=rotation_seconds)
        self._locks = locks if locks is not None else KeyedLockTable()

    def open(self, course_id, slot_id, venue, duration, instructor_id, at=None):
        """Open a session lasting ``duration`` (seconds or timedelta) from ``at``."""
        at = as_naive_utc(at)
        if not isinstance(duration, timedelta):
            duration = timedelta(seconds=duration)
        if duration <= timedelta(0):
            raise ValueError("session duration must be positive")

        with self._locks.hold(("schedule", instructor_id, slot_id)):
            for existing in self._live_sessions_for_slot(instructor_id, slot_id, at):
                logger.info(
                    "Refusing to open %s/%s for %s: %s is still live",
                    course_id, slot_id, instructor_id, existing.id,
                )
                raise ScheduleConflict(instructor_id, slot_id, existing.id)

            session = AttendanceSession(
                course_id=course_id,
                slot_id=slot_id,
                venue=venue or "",
                instructor_id=instructor_id,
                created_at=at,
                expires_at=at + duration,
                nonce=new_nonce(),
                nonce_issued_at=at,
            )
            db.session.add(session)
            storage.commit("open session")

        logger.info(
            "Opened session %s for %s/%s at %s until %s",
            session.id, course_id, slot_id, session.venue or "-", session.expires_at,
        )
        return session

    def get(self, session_id, fresh=False):
        """Return the session or ``None``; unknown ids are not an error here.

        ``fresh`` reloads the row even if this unit of work already holds it.
        """
        if not session_id:
            return None
        return storage.read(
            "load session", db.session.get, AttendanceSession, session_id, populate_existing=fresh
        )

    def require(self, session_id, fresh=False):
        session = self.get(session_id, fresh=fresh)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def current_token(self, session_id, at=None):
        """Token for display. Rotates the nonce once the interval has elapsed."""
        at = as_naive_utc(at)
        with self._locks.hold(("session", session_id)):
            session = self.require(session_id, fresh=True)
            if self._rotation_due(session, at):
                session.nonce = new_nonce()
                session.nonce_issued_at = at
                storage.commit("rotate token")
                logger.debug("Rotated token for session %s", session.id)
            return self.codec.mint_for(session)

    def _rotation_due(self, session, at):
        if not self.rotation_enabled or not session.is_live(at):
            return False
        return at >= session.nonce_issued_at + self.rotation_interval

    def is_live(self, session_id, at=None):
        session = self.get(session_id)
        return session is not None and session.is_live(as_naive_utc(at))

    def time_remaining(self, session_id, at=None):
        return self.require(session_id).time_remaining(as_naive_utc(at))

    def stop(self, session_id, at=None):
        """Revoke the session. Stopping an already revoked session is a no-op."""
        at = as_naive_utc(at)
        with self._locks.hold(("session", session_id)):
            session = self.require(session_id, fresh=True)
            if session.revoked:
                return session
            session.revoked = True
            session.revoked_at = at
            storage.commit("stop session")
        logger.info("Stopped session %s", session_id)
        return session

    def live_sessions(self, instructor_id, at=None):
        at = as_naive_utc(at)
        stmt = (
            select(AttendanceSession)
            .where(AttendanceSession.instructor_id == instructor_id)
            .where(AttendanceSession.revoked.is_(False))
            .where(AttendanceSession.created_at <= at)
            .where(AttendanceSession.expires_at > at)
            .order_by(AttendanceSession.created_at)
        )
        return storage.read("list sessions", lambda: list(db.session.scalars(stmt)))

    def _live_sessions_for_slot(self, instructor_id, slot_id, at):
        stmt = select(AttendanceSession).where(
            AttendanceSession.instructor_id == instructor_id,
            AttendanceSession.slot_id == slot_id,
            AttendanceSession.revoked.is_(False),
            AttendanceSession.created_at <= at,
            AttendanceSession.expires_at > at,
        )
        return storage.read("check schedule", lambda: list(db.session.scalars(stmt)))
