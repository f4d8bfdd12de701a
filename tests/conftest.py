import copy
import itertools
from pathlib import Path

import pytest

from byohost.agent.reconciler import HostReconciler
from byohost.api import constants as c
from byohost.api.models import HostRecord, ObjectReference
from byohost.cloudinit.file_writer import FileWriter
from byohost.cloudinit.template import TemplateParser
from byohost.errors import CommandError
from byohost.observers.dispatcher import EventBus
from byohost.store.errors import NotFoundError

# ----------------- In-memory management cluster -----------------

class FakeStore:
    """ClusterStore over plain dicts. Every write is appended to ``mutations``."""

    def __init__(self):
        self.hosts = {}
        self.secrets = {}
        self.infra_machines = {}
        self.machines = {}
        self.machine_sets = {}
        self.deployments = {}
        self.mutations = []
        self._rv = itertools.count(1)

    def _bump(self, manifest):
        manifest.setdefault("metadata", {})["resourceVersion"] = str(next(self._rv))
        return manifest

    # hosts
    def add_host(self, host: HostRecord) -> HostRecord:
        manifest = self._bump(host.to_manifest())
        manifest["metadata"].setdefault("uid", f"uid-{host.name}")
        self.hosts[(host.namespace, host.name)] = manifest
        return self.get_host(host.name, host.namespace)

    def get_host(self, name, namespace):
        try:
            return HostRecord.from_manifest(copy.deepcopy(self.hosts[(namespace, name)]))
        except KeyError:
            raise NotFoundError(f"byohost {namespace}/{name} not found") from None

    def create_host(self, host):
        self.mutations.append(("create_host", host.name))
        return self.add_host(host)

    def update_host(self, name, namespace, mutate):
        fresh = self.get_host(name, namespace)
        mutate(fresh)
        self.mutations.append(("update_host", name))
        if fresh.being_deleted and not fresh.finalizers:
            del self.hosts[(namespace, name)]
            return fresh
        self.hosts[(namespace, name)] = self._bump(fresh.to_manifest())
        return self.get_host(name, namespace)

    def delete_host(self, name, namespace):
        self.mutations.append(("delete_host", name))
        if self.hosts.pop((namespace, name), None) is None:
            raise NotFoundError(f"byohost {namespace}/{name} not found")

    def watch_host(self, name, namespace, timeout_seconds):
        if (namespace, name) in self.hosts:
            yield self.get_host(name, namespace)

    # secrets
    def get_secret(self, name, namespace):
        try:
            return dict(self.secrets[(namespace, name)])
        except KeyError:
            raise NotFoundError(f"secret {namespace}/{name} not found") from None

    def apply_secret(self, name, namespace, data, owner=None):
        self.mutations.append(("apply_secret", name))
        self.secrets[(namespace, name)] = dict(data)
        return ObjectReference(kind="Secret", name=name, namespace=namespace)

    # cluster api
    def _lookup(self, table, kind, name, namespace):
        try:
            return copy.deepcopy(table[(namespace, name)])
        except KeyError:
            raise NotFoundError(f"{kind} {namespace}/{name} not found") from None

    def get_infra_machine(self, name, namespace):
        return self._lookup(self.infra_machines, "byomachine", name, namespace)

    def get_machine(self, name, namespace):
        return self._lookup(self.machines, "machine", name, namespace)

    def get_machine_set(self, name, namespace):
        return self._lookup(self.machine_sets, "machineset", name, namespace)

    def get_machine_deployment(self, name, namespace):
        return self._lookup(self.deployments, "machinedeployment", name, namespace)

    def annotate_machine(self, name, namespace, key, value):
        self.mutations.append(("annotate_machine", name, key, value))
        self.machines[(namespace, name)]["metadata"].setdefault("annotations", {})[key] = value

    def scale_machine_deployment(self, name, namespace, delta):
        self.mutations.append(("scale_machine_deployment", name, delta))
        md = self.deployments[(namespace, name)]
        md["spec"]["replicas"] = max(md["spec"]["replicas"] + delta, 0)
        return md["spec"]["replicas"]


# ----------------- Local host fakes -----------------

class RecordingRunner:
    """Records every command; argv containing a ``fail_on`` word exits 1."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)

    def run_command(self, argv):
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        if any(word in arg for arg in argv for word in self.fail_on):
            raise CommandError(argv, 1, stderr="boom")
        return ""

    def run_script(self, script):
        return self.run_command(["/bin/bash", "-c", script])


class RecordingWriter(FileWriter):
    def __init__(self):
        super().__init__(dry_run=False)
        self.written = []
        self.removed = []

    def write(self, path, content, mode=0o644, *, append=False):
        self.written.append((str(path), content, mode))

    def chown(self, path, owner):
        pass

    def remove(self, path):
        self.removed.append(str(path))
        return True


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)

    def reasons(self, event_type=None):
        return [e.reason for e in self.events if event_type is None or e.event_type == event_type]


# ----------------- Fixtures -----------------

@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def runner():
    return RecordingRunner()


@pytest.fixture
def writer():
    return RecordingWriter()


@pytest.fixture
def capture():
    return Capture()


@pytest.fixture
def make_reconciler(store, runner, writer, capture):
    def _make(**kwargs):
        return HostReconciler(
            store,
            kwargs.pop("runner", runner),
            writer,
            TemplateParser(),
            EventBus([capture]),
            **kwargs,
        )
    return _make


@pytest.fixture
def kubeconfig(tmp_path: Path):
    p = tmp_path / "config"
    p.write_text(
        "apiVersion: v1\n"
        "current-context: byoh\n"
        "contexts:\n"
        "- name: byoh\n"
        "  context:\n"
        "    cluster: mgmt\n"
        "    namespace: tenant-a\n"
    )
    return p


def claimed_host(name="host-1", namespace="default", **fields):
    fields.setdefault("machine_ref", ObjectReference(kind=c.INFRA_MACHINE_KIND, name="byomachine-1", namespace=namespace))
    fields.setdefault("bootstrap_secret", ObjectReference(kind="Secret", name="bootstrap-data", namespace=namespace))
    fields.setdefault("labels", {c.CLUSTER_NAME_LABEL: "workload"})
    return HostRecord(name=name, namespace=namespace, **fields)


@pytest.fixture
def new_host():
    return claimed_host


@pytest.fixture
def make_runner():
    return RecordingRunner
