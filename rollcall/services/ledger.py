import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from rollcall.errors import InvalidOutcome, StorageError
from rollcall.models import db
from rollcall.models.attendance_model import (
    OUTCOMES,
    SOURCE_AUTOMATIC,
    SOURCE_MANUAL,
    AttendanceRecord,
)
from rollcall.services import storage
from rollcall.services.locks import KeyedLockTable
from rollcall.utils.time_utils import as_naive_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Inserted:
    record: AttendanceRecord


@dataclass(frozen=True)
class AlreadyExists:
    record: AttendanceRecord


@dataclass(frozen=True)
class RecordFilter:
    session_id: str = None
    identity: str = None
    source: str = None
    outcome: str = None


class RecordQuery:
    """Lazy view over ledger rows matching a filter.

    Rows come back ordered by ``recorded_at`` then insertion order. Each
    iteration runs the query again, so the view can be walked any number of
    times and always reflects the ledger at that moment.
    """

    def __init__(self, filters, batch_size=200):
        self.filters = filters
        self.batch_size = batch_size

    def statement(self):
        stmt = select(AttendanceRecord)
        f = self.filters
        if f.session_id is not None:
            stmt = stmt.where(AttendanceRecord.session_id == f.session_id)
        if f.identity is not None:
            stmt = stmt.where(AttendanceRecord.identity == f.identity)
        if f.source is not None:
            stmt = stmt.where(AttendanceRecord.source == f.source)
        if f.outcome is not None:
            stmt = stmt.where(AttendanceRecord.outcome == f.outcome)
        return stmt.order_by(AttendanceRecord.recorded_at, AttendanceRecord.id)

    def __iter__(self):
        try:
            result = db.session.scalars(
                self.statement().execution_options(yield_per=self.batch_size)
            )
            for record in result:
                yield record
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("storage fault while reading ledger: %s", exc)
            raise StorageError("ledger query failed") from exc

    def all(self):
        return list(self)


class AttendanceLedger:
    """Append-only store of attendance records.

    Only the redemption validator and the reconciliation engine write here.
    """

    def __init__(self, locks=None):
        self._locks = locks if locks is not None else KeyedLockTable()

    def append(self, record):
        if record.outcome not in OUTCOMES:
            raise InvalidOutcome(record.outcome)
        db.session.add(record)
        storage.commit("append attendance record")
        logger.debug("Appended %r", record)
        return record

    def exists_automatic(self, session_id, identity):
        return self.find_automatic(session_id, identity) is not None

    def find_automatic(self, session_id, identity):
        stmt = select(AttendanceRecord).where(
            AttendanceRecord.session_id == session_id,
            AttendanceRecord.identity == identity,
            AttendanceRecord.source == SOURCE_AUTOMATIC,
        )
        return storage.read("look up automatic record", lambda: db.session.scalars(stmt).first())

    def check_and_insert_automatic(self, session_id, identity, outcome, at):
        """Insert the automatic record for the pair unless one already exists.

        The in-process key lock serialises attempts for the same pair; the
        partial unique index catches attempts from other processes.
        """
        if outcome not in OUTCOMES:
            raise InvalidOutcome(outcome)
        at = as_naive_utc(at)
        with self._locks.hold(("record", session_id, identity)):
            existing = self.find_automatic(session_id, identity)
            if existing is not None:
                return AlreadyExists(existing)

            record = AttendanceRecord(
                session_id=session_id,
                identity=identity,
                outcome=outcome,
                source=SOURCE_AUTOMATIC,
                recorded_at=at,
                recorder=identity,
            )
            db.session.add(record)
            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                existing = self.find_automatic(session_id, identity)
                if existing is None:
                    # Constraint tripped on something other than the pair
                    raise StorageError("append attendance record failed") from None
                logger.debug("Lost insert race for %s in %s", identity, session_id)
                return AlreadyExists(existing)
            except SQLAlchemyError as exc:
                db.session.rollback()
                logger.error("storage fault during automatic insert: %s", exc)
                raise StorageError("append attendance record failed") from exc
            return Inserted(record)

    def append_manual(self, session_id, identity, outcome, recorder, at, supersedes=None):
        record = AttendanceRecord(
            session_id=session_id,
            identity=identity,
            outcome=outcome,
            source=SOURCE_MANUAL,
            recorded_at=as_naive_utc(at),
            recorder=recorder,
            supersedes_id=supersedes.id if supersedes is not None else None,
        )
        return self.append(record)

    def query(self, filters=None, **kwargs):
        if filters is None:
            filters = RecordFilter(**kwargs)
        return RecordQuery(filters)

    def history(self, session_id, identity):
        return self.query(session_id=session_id, identity=identity).all()
