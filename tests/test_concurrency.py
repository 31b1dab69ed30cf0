import threading

import pytest

from rollcall.models.attendance_model import SOURCE_AUTOMATIC
from rollcall.services.locks import KeyedLockTable
from rollcall.services.validator import Accepted, Rejected, RejectReason


def run_in_threads(app, calls):
    """Run each zero-arg callable in its own thread and app context, released together."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)
    errors = []

    def worker(index, call):
        with app.app_context():
            barrier.wait()
            try:
                results[index] = call()
            except Exception as exc:  # surfaced to the test below
                errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i, c)) for i, c in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert not errors, errors
    return results


@pytest.fixture
def live_token(engine, open_session, t):
    session = open_session()
    return session, engine.sessions.current_token(session.id, at=t(0))


def test_same_identity_concurrent_scans_accept_exactly_once(app, engine, live_token, t):
    session, token = live_token

    results = run_in_threads(app, [lambda: engine.redeem(token, "alice", at=t(30))] * 8)

    accepted = [r for r in results if isinstance(r, Accepted)]
    rejected = [r for r in results if isinstance(r, Rejected)]
    assert len(accepted) == 1
    assert len(rejected) == 7
    assert {r.reason for r in rejected} == {RejectReason.ALREADY_MARKED}
    automatic = engine.ledger.query(session_id=session.id, source=SOURCE_AUTOMATIC).all()
    assert [r.identity for r in automatic] == ["alice"]


def test_different_identities_all_accepted(app, engine, live_token, t):
    session, token = live_token
    people = ["alice", "bob", "carol", "dave"]

    results = run_in_threads(
        app, [lambda who=who: engine.redeem(token, who, at=t(30)) for who in people]
    )

    assert all(isinstance(r, Accepted) for r in results)
    recorded = {r.identity for r in engine.ledger.query(session_id=session.id)}
    assert recorded == set(people)


def test_mixed_retries_from_a_full_class(app, engine, live_token, t):
    session, token = live_token
    people = ["alice", "bob", "carol", "dave"] * 3

    results = run_in_threads(
        app, [lambda who=who: engine.redeem(token, who, at=t(30)) for who in people]
    )

    assert sum(isinstance(r, Accepted) for r in results) == 4
    assert len(engine.ledger.query(session_id=session.id).all()) == 4


def test_keyed_lock_serialises_same_key_only():
    locks = KeyedLockTable()
    inside = threading.Event()
    release = threading.Event()

    def hold_a():
        with locks.hold("a"):
            inside.set()
            release.wait(timeout=5)

    holder = threading.Thread(target=hold_a)
    holder.start()
    assert inside.wait(timeout=5)

    # A different key is not blocked while "a" is held
    with locks.hold("b"):
        assert len(locks) == 2

    release.set()
    holder.join(timeout=5)
    assert len(locks) == 0


class TestRotationAgainstManualEntry:
    @pytest.fixture
    def app(self, make_app):
        return make_app(TOKEN_ROTATION_ENABLED=True, TOKEN_ROTATION_SECONDS=10)

    def test_rotation_waits_for_manual_entry_on_same_session_only(
        self, app, engine, open_session, t, monkeypatch
    ):
        held = open_session()
        other = open_session(slot_id="tue-1400")
        engine.sessions.current_token(other.id, at=t(0))
        first_token = engine.sessions.current_token(held.id, at=t(0))

        inside = threading.Event()
        release = threading.Event()
        append_manual = engine.ledger.append_manual

        def slow_append(*args, **kwargs):
            inside.set()
            release.wait(timeout=10)
            return append_manual(*args, **kwargs)

        monkeypatch.setattr(engine.ledger, "append_manual", slow_append)
        results = {}

        def in_context(name, call):
            def target():
                with app.app_context():
                    results[name] = call()

            thread = threading.Thread(target=target)
            thread.start()
            return thread

        manual = in_context(
            "manual", lambda: engine.reconciler.apply_manual(held.id, "bob", "present", "prof", at=t(12))
        )
        assert inside.wait(timeout=5)

        same = in_context("same", lambda: engine.sessions.current_token(held.id, at=t(15)))
        different = in_context("different", lambda: engine.sessions.current_token(other.id, at=t(15)))

        # Another session's key is free while the manual entry holds this one
        different.join(timeout=5)
        assert not different.is_alive()
        same.join(timeout=0.5)
        assert same.is_alive()
        assert "same" not in results

        release.set()
        manual.join(timeout=10)
        same.join(timeout=10)
        assert not manual.is_alive() and not same.is_alive()

        assert results["manual"].identity == "bob"
        assert results["same"] != first_token
        assert engine.codec.decode(results["same"])[1] == engine.sessions.get(held.id, fresh=True).nonce
