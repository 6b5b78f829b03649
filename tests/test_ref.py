"""
Unit Tests for Ref / dosync
===========================

Coordinated, transactional changes across several refs.
"""

import threading

import pytest

from core.errors import AgentError, RetryLimitExceeded, TransactionError, ValidationError
from core.services.maps import assoc_in
from core.state import Agent, Ref, current_transaction, dosync, in_transaction


def inc(v, by=1):
    return v + by


def bump_from_other_thread(ref):
    """Commit a change to ``ref`` from a separate thread and wait for it."""

    worker = threading.Thread(target=lambda: dosync(lambda: ref.alter(inc)))
    worker.start()
    worker.join()


class TestRefOutsideTransaction:
    def test_deref_reads_committed_value(self):
        r = Ref({"a": 1})
        assert r.deref() == {"a": 1}
        assert r.value == {"a": 1}

    @pytest.mark.parametrize(
        "call",
        [
            lambda r: r.ref_set(1),
            lambda r: r.alter(inc),
            lambda r: r.commute(inc),
            lambda r: r.ensure(),
        ],
    )
    def test_writes_require_transaction(self, call):
        r = Ref(0)
        with pytest.raises(TransactionError):
            call(r)
        assert r.deref() == 0

    def test_not_in_transaction(self):
        assert in_transaction() is False
        assert current_transaction() is None


class TestDosync:
    def test_alter_and_return_value(self):
        r = Ref(1)
        assert dosync(lambda: r.alter(inc, 2)) == 3
        assert r.deref() == 3

    def test_ref_set_and_read_own_writes(self):
        r = Ref(1)

        def body():
            r.ref_set(10)
            return r.deref()

        assert dosync(body) == 10
        assert r.deref() == 10

    def test_transfer_is_atomic(self):
        accounts = Ref({"alice": 100, "bob": 0})
        log = Ref([])

        def transfer(amount):
            accounts.alter(lambda m: assoc_in(assoc_in(m, ["alice"], m["alice"] - amount), ["bob"], m["bob"] + amount))
            log.alter(lambda entries: entries + [amount])

        dosync(transfer, 30)
        assert accounts.deref() == {"alice": 70, "bob": 30}
        assert log.deref() == [30]

    def test_nested_dosync_joins_outer(self):
        r = Ref(0)
        seen = []

        def inner():
            seen.append(in_transaction())
            return r.alter(inc)

        def outer():
            tx = current_transaction()
            dosync(inner)
            seen.append(current_transaction() is tx)
            return r.alter(inc)

        assert dosync(outer) == 2
        assert seen == [True, True]
        assert in_transaction() is False

    def test_exception_aborts_everything(self):
        a, b = Ref(1), Ref(2)

        def body():
            a.ref_set(100)
            b.ref_set(200)
            raise RuntimeError("abort")

        with pytest.raises(RuntimeError):
            dosync(body)
        assert (a.deref(), b.deref()) == (1, 2)
        assert in_transaction() is False

    def test_validator_rejection_aborts_all_refs(self):
        a = Ref(1)
        b = Ref(1, validator=lambda v: v >= 0)

        def body():
            a.alter(inc)
            b.alter(lambda v: v - 5)

        with pytest.raises(ValidationError):
            dosync(body)
        assert (a.deref(), b.deref()) == (1, 1)

    def test_watches_fire_after_commit(self):
        events = []
        r = Ref(0)
        r.add_watch("w", lambda key, ref, old, new: events.append((old, new, in_transaction())))
        dosync(lambda: r.alter(inc))
        assert events == [(0, 1, False)]

    def test_read_only_transaction_does_not_notify(self):
        events = []
        r = Ref(0)
        r.add_watch("w", lambda *args: events.append(args))
        assert dosync(r.deref) == 0
        assert events == []

    def test_ensure_returns_value(self):
        r = Ref(5)
        assert dosync(r.ensure) == 5


class TestCommute:
    def test_commute_applies(self):
        r = Ref(0)
        assert dosync(lambda: r.commute(inc, 5)) == 5
        assert r.deref() == 5

    def test_set_after_commute_is_rejected(self):
        r = Ref(0)

        def body():
            r.commute(inc)
            r.ref_set(10)

        with pytest.raises(TransactionError):
            dosync(body)
        assert r.deref() == 0

    def test_commute_after_set_keeps_written_value(self):
        r = Ref(0)

        def body():
            r.ref_set(10)
            return r.commute(inc)

        assert dosync(body) == 11
        assert r.deref() == 11

    def test_commute_after_alter_keeps_written_value(self):
        r = Ref(5)

        def body():
            r.alter(lambda v: v * 10)
            return r.commute(inc)

        assert dosync(body) == 51
        assert r.deref() == 51

    def test_concurrent_commutes_are_not_lost(self):
        counter = Ref(0)

        def work():
            for _ in range(200):
                dosync(lambda: counter.commute(inc))

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counter.deref() == 1600


class TestRetries:
    def test_conflict_retries_and_succeeds(self):
        r = Ref(0)
        attempts = []

        def body():
            attempts.append(current_transaction().attempt)
            if len(attempts) == 1:
                bump_from_other_thread(r)
            return r.alter(inc)

        assert dosync(body) == 2
        assert attempts == [1, 2]
        assert r.deref() == 2

    def test_retry_limit(self):
        r = Ref(0)
        attempts = []

        def body():
            attempts.append(1)
            bump_from_other_thread(r)
            return r.alter(inc)

        with pytest.raises(RetryLimitExceeded) as excinfo:
            dosync(body, max_retries=3)
        assert isinstance(excinfo.value, TransactionError)
        assert len(attempts) == 3
        # only the three bumps from the other thread landed
        assert r.deref() == 3
        assert in_transaction() is False

    def test_concurrent_transfers_keep_total(self):
        a, b = Ref(1000), Ref(1000)

        def move(amount):
            def body():
                a.alter(lambda v: v - amount)
                b.alter(lambda v: v + amount)

            for _ in range(200):
                dosync(body)

        threads = [threading.Thread(target=move, args=(n,)) for n in (1, -1, 2, -2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert a.deref() + b.deref() == 2000
        assert a.deref() == 1000


class TestAgentSendsInTransaction:
    def test_sends_dispatched_after_commit(self, agents):
        agent = Agent(0)
        r = Ref(0)

        def body():
            r.alter(inc)
            agent.send(inc, 10)

        dosync(body)
        assert agent.await_(timeout=5)
        assert agent.deref() == 10

    def test_sends_dropped_on_abort(self, agents):
        agent = Agent(0)

        def body():
            agent.send(inc, 10)
            raise RuntimeError("abort")

        with pytest.raises(RuntimeError):
            dosync(body)
        assert agent.await_(timeout=5)
        assert agent.deref() == 0

    def test_sends_from_retried_attempts_run_once(self, agents):
        agent = Agent([])
        r = Ref(0)
        attempts = []

        def body():
            attempts.append(1)
            agent.send(lambda v, n: v + [n], len(attempts))
            if len(attempts) == 1:
                bump_from_other_thread(r)
            r.alter(inc)

        dosync(body)
        assert agent.await_(timeout=5)
        assert agent.deref() == [2]

    def test_failed_agent_does_not_block_other_sends(self, agents):
        broken = Agent(0)
        broken.send(lambda v: v / 0)
        with pytest.raises(AgentError):
            broken.await_(timeout=5)

        healthy = Agent(0)
        r = Ref(0)
        events = []
        r.add_watch("w", lambda key, ref, old, new: events.append(new))

        def body():
            r.alter(inc)
            broken.send(inc)
            healthy.send(inc, 10)

        dosync(body)
        assert r.deref() == 1
        assert events == [1]
        assert healthy.await_(timeout=5)
        assert healthy.deref() == 10
        assert broken.deref() == 0
