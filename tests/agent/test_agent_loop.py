import threading

from byohost.agent.loop import AgentLoop
from byohost.agent.reconciler import Result
from byohost.api.models import HostRecord
from byohost.errors import BootstrapError


class ScriptedReconciler:
    """Returns (or raises) the given outcomes in order."""

    def __init__(self, outcomes, on_call=None):
        self.outcomes = list(outcomes)
        self.on_call = on_call
        self.calls = 0

    def reconcile(self, name, namespace):
        self.calls += 1
        if self.on_call:
            self.on_call()
        outcome = self.outcomes.pop(0) if self.outcomes else Result()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _loop(store, reconciler, **kw):
    return AgentLoop(store, reconciler, "host-1", "default", **kw)


def test_register_creates_missing_host_record(store):
    loop = _loop(store, ScriptedReconciler([]), labels={"site": "lab"})

    host = loop.register()

    assert host.name == "host-1"
    assert host.labels == {"site": "lab"}
    assert store.mutations == [("create_host", "host-1")]


def test_register_keeps_existing_host_record(store):
    store.add_host(HostRecord(name="host-1", labels={"existing": "yes"}))

    host = _loop(store, ScriptedReconciler([])).register()

    assert host.labels == {"existing": "yes"}
    assert store.mutations == []


def test_requeue_runs_again_immediately(store):
    store.add_host(HostRecord(name="host-1"))
    rec = ScriptedReconciler([Result(requeue=True), Result()])

    assert _loop(store, rec).run_once() is None
    assert rec.calls == 2


def test_requeue_after_is_returned_as_delay(store):
    store.add_host(HostRecord(name="host-1"))
    rec = ScriptedReconciler([Result(requeue_after=30.0)])

    assert _loop(store, rec).run_once() == 30.0


def test_failures_back_off_exponentially_and_reset(store):
    store.add_host(HostRecord(name="host-1"))
    err = BootstrapError("boom")
    rec = ScriptedReconciler([err, err, err, err, Result(), err])
    loop = _loop(store, rec, backoff_base=1.0, backoff_max=5.0)

    delays = [loop.run_once() for _ in range(4)]
    assert delays == [1.0, 2.0, 4.0, 5.0]
    assert loop.last_error is err

    assert loop.run_once() is None
    assert loop.failures == 0
    assert loop.run_once() == 1.0


def test_unchanged_record_does_not_end_the_wait(store):
    store.add_host(HostRecord(name="host-1"))
    loop = _loop(store, ScriptedReconciler([]))
    loop.run_once()

    seen = []
    original = store.watch_host

    def watch(name, namespace, timeout_seconds):
        for host in original(name, namespace, timeout_seconds):
            seen.append(host.resource_version)
            yield host

    store.watch_host = watch
    loop.wait_for_change(threading.Event())

    assert len(seen) == 1


def test_run_registers_and_stops(store):
    stop = threading.Event()
    rec = ScriptedReconciler([Result()], on_call=stop.set)

    _loop(store, rec).run(stop)

    assert rec.calls == 1
    assert ("default", "host-1") in store.hosts
