from datetime import timedelta

import pytest

from rollcall.errors import ScheduleConflict, SessionNotFound
from rollcall.models.session_model import STATE_CLOSED, STATE_OPEN, STATE_REVOKED


def test_open_sets_window_from_duration(open_session, t):
    session = open_session(duration=3600)

    assert session.created_at == t(0)
    assert session.expires_at == t(3600)
    assert session.venue == "Room 4"
    assert not session.revoked


def test_open_accepts_timedelta_duration(engine, t):
    session = engine.sessions.open("CS101", "slot", "", timedelta(minutes=5), "prof", at=t(0))

    assert session.expires_at == t(300)


@pytest.mark.parametrize("duration", [0, -5])
def test_open_rejects_non_positive_duration(engine, t, duration):
    with pytest.raises(ValueError):
        engine.sessions.open("CS101", "slot", "", duration, "prof", at=t(0))


def test_session_ids_are_unique(open_session):
    first = open_session(slot_id="a")
    second = open_session(slot_id="b")

    assert first.id != second.id


def test_second_live_session_for_same_slot_conflicts(open_session):
    first = open_session()

    with pytest.raises(ScheduleConflict) as exc:
        open_session(start=30)

    assert exc.value.existing_session_id == first.id


def test_other_slot_or_instructor_does_not_conflict(open_session):
    open_session()
    open_session(slot_id="tue-1400", start=10)
    open_session(instructor="other-prof", start=20)


def test_slot_can_be_reopened_after_stop_or_expiry(engine, open_session, t):
    first = open_session(duration=600)
    engine.sessions.stop(first.id, at=t(100))
    second = open_session(start=120, duration=600)

    third = open_session(start=800)

    assert len({first.id, second.id, third.id}) == 3


def test_conflict_names_the_live_session_not_past_ones(engine, open_session, t):
    for start in (0, 700, 1400):
        open_session(start=start, duration=600)
    revoked = open_session(start=2100, duration=600)
    engine.sessions.stop(revoked.id, at=t(2150))
    live = open_session(start=2200, duration=600)

    with pytest.raises(ScheduleConflict) as exc:
        open_session(start=2300)

    assert exc.value.existing_session_id == live.id


def test_window_that_has_not_started_does_not_conflict(open_session):
    later = open_session(start=600, duration=600)

    earlier = open_session(start=0, duration=300)

    assert earlier.id != later.id


def test_is_live_window_is_half_open(engine, open_session, t):
    session = open_session(duration=3600)

    assert not engine.sessions.is_live(session.id, at=t(-1))
    assert engine.sessions.is_live(session.id, at=t(0))
    assert engine.sessions.is_live(session.id, at=t(3599))
    assert not engine.sessions.is_live(session.id, at=t(3600))


def test_unknown_session_is_not_live(engine, t):
    assert not engine.sessions.is_live("nope", at=t(0))


def test_stop_revokes_and_is_idempotent(engine, open_session, t):
    session = open_session()

    engine.sessions.stop(session.id, at=t(10))
    engine.sessions.stop(session.id, at=t(20))

    stopped = engine.sessions.require(session.id)
    assert stopped.revoked
    assert stopped.revoked_at == t(10)
    assert not engine.sessions.is_live(session.id, at=t(30))


def test_stop_unknown_session_raises(engine):
    with pytest.raises(SessionNotFound):
        engine.sessions.stop("missing")


def test_state_distinguishes_closed_and_revoked_for_display(engine, open_session, t):
    expired = open_session(slot_id="a", duration=60)
    revoked = open_session(slot_id="b")
    engine.sessions.stop(revoked.id, at=t(5))

    assert expired.state(t(10)) == STATE_OPEN
    assert expired.state(t(60)) == STATE_CLOSED
    assert revoked.state(t(10)) == STATE_REVOKED


def test_time_remaining_counts_down_to_zero(engine, open_session, t):
    session = open_session(duration=120)

    assert engine.sessions.time_remaining(session.id, at=t(0)) == 120
    assert engine.sessions.time_remaining(session.id, at=t(90)) == 30
    assert engine.sessions.time_remaining(session.id, at=t(500)) == 0


def test_live_sessions_lists_only_open_windows(engine, open_session, t):
    live = open_session(slot_id="a")
    stopped = open_session(slot_id="b")
    open_session(slot_id="c", duration=10)
    open_session(slot_id="d", instructor="someone-else")
    engine.sessions.stop(stopped.id, at=t(1))

    assert [s.id for s in engine.sessions.live_sessions("prof", at=t(30))] == [live.id]


def test_token_is_stable_without_rotation(engine, open_session, t):
    session = open_session()

    assert engine.sessions.current_token(session.id, at=t(0)) == engine.sessions.current_token(
        session.id, at=t(500)
    )


def test_current_token_for_unknown_session_raises(engine):
    with pytest.raises(SessionNotFound):
        engine.sessions.current_token("missing")


class TestRotation:
    @pytest.fixture
    def app(self, make_app):
        return make_app(TOKEN_ROTATION_ENABLED=True, TOKEN_ROTATION_SECONDS=10)

    def test_token_changes_after_interval(self, engine, open_session, t):
        session = open_session()

        first = engine.sessions.current_token(session.id, at=t(0))
        same = engine.sessions.current_token(session.id, at=t(9))
        rotated = engine.sessions.current_token(session.id, at=t(10))

        assert first == same
        assert rotated != first
        assert engine.codec.decode(rotated) == (session.id, engine.sessions.require(session.id).nonce)

    def test_rotation_boundary_moves_with_each_rotation(self, engine, open_session, t):
        session = open_session()

        engine.sessions.current_token(session.id, at=t(0))
        second = engine.sessions.current_token(session.id, at=t(25))

        assert engine.sessions.current_token(session.id, at=t(34)) == second
        assert engine.sessions.current_token(session.id, at=t(35)) != second

    def test_closed_session_does_not_rotate(self, engine, open_session, t):
        session = open_session()
        before = engine.sessions.current_token(session.id, at=t(0))
        engine.sessions.stop(session.id, at=t(1))

        assert engine.sessions.current_token(session.id, at=t(60)) == before
