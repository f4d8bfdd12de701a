import base64

import pytest
from kubernetes.client.exceptions import ApiException

from byohost.api import constants as c
from byohost.api.models import ObjectReference
from byohost.store.errors import NotFoundError, StoreError
from byohost.store.kube import KubeStore, namespace_from_kubeconfig
from byohost.utils import retry as retry_mod


def _host(rv="1", **status):
    return {
        "apiVersion": f"{c.INFRA_GROUP}/{c.INFRA_VERSION}",
        "kind": c.HOST_KIND,
        "metadata": {"name": "host-1", "namespace": "default", "resourceVersion": rv},
        "spec": {},
        "status": dict(status),
    }


class FakeCustom:
    def __init__(self):
        self.objects = {}
        self.calls = []
        self.conflicts = 0

    def get_namespaced_custom_object(self, group, version, namespace, plural, name):
        self.calls.append(("get", plural, name))
        try:
            return self.objects[(plural, name)]
        except KeyError:
            raise ApiException(status=404, reason="Not Found") from None

    def replace_namespaced_custom_object(self, group, version, namespace, plural, name, body):
        self.calls.append(("replace", plural, name))
        if self.conflicts:
            self.conflicts -= 1
            raise ApiException(status=409, reason="Conflict")
        body["metadata"]["resourceVersion"] = str(int(body["metadata"]["resourceVersion"]) + 1)
        self.objects[(plural, name)] = body
        return body

    def replace_namespaced_custom_object_status(self, group, version, namespace, plural, name, body):
        self.calls.append(("replace_status", plural, name))
        return self.replace_namespaced_custom_object(group, version, namespace, plural, name, body)

    def patch_namespaced_custom_object(self, group, version, namespace, plural, name, body):
        self.calls.append(("patch", plural, name, body))
        return body


class FakeCore:
    def __init__(self, existing=False):
        self.existing = existing
        self.calls = []
        self.data = {}

    def read_namespaced_secret(self, name, namespace):
        if name not in self.data:
            raise ApiException(status=404, reason="Not Found")

        class S:
            data = self.data[name]
        return S()

    def create_namespaced_secret(self, namespace, body):
        self.calls.append(("create", body.metadata.name))
        if self.existing:
            raise ApiException(status=409, reason="AlreadyExists")

    def replace_namespaced_secret(self, name, namespace, body):
        self.calls.append(("replace", name))


@pytest.fixture
def kube():
    store = KubeStore(None)
    store.custom = FakeCustom()
    store.core = FakeCore()
    return store


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch):
    monkeypatch.setattr(retry_mod.time, "sleep", lambda s: None)


def test_missing_host_is_not_found(kube):
    with pytest.raises(NotFoundError):
        kube.get_host("host-1", "default")


def test_update_host_writes_spec_and_status(kube):
    kube.custom.objects[(c.HOST_PLURAL, "host-1")] = _host()

    updated = kube.update_host(
        "host-1", "default",
        lambda h: setattr(h, "machine_ref", ObjectReference(kind="ByoMachine", name="m1")),
    )

    assert updated.machine_ref.name == "m1"
    ops = [call[0] for call in kube.custom.calls]
    assert ops == ["get", "replace", "replace_status", "replace"]


def test_update_host_rereads_on_conflict(kube):
    kube.custom.objects[(c.HOST_PLURAL, "host-1")] = _host()
    kube.custom.conflicts = 1
    seen = []

    kube.update_host("host-1", "default", lambda h: seen.append(h.resource_version))

    assert len(seen) == 2


def test_get_secret_decodes_data(kube):
    kube.core.data["bootstrap-data"] = {"value": base64.b64encode(b"runcmd: []").decode()}
    assert kube.get_secret("bootstrap-data", "default") == {"value": b"runcmd: []"}


def test_get_secret_missing_is_not_found(kube):
    with pytest.raises(NotFoundError):
        kube.get_secret("nope", "default")


def test_apply_secret_replaces_existing(kube):
    kube.core.existing = True

    ref = kube.apply_secret("byoh-uninstall-host-1", "default", {"uninstall": b"echo"})

    assert kube.core.calls == [("create", "byoh-uninstall-host-1"), ("replace", "byoh-uninstall-host-1")]
    assert (ref.kind, ref.name, ref.namespace) == ("Secret", "byoh-uninstall-host-1", "default")


def test_scale_uses_observed_resource_version(kube):
    kube.custom.objects[(c.MACHINE_DEPLOYMENT_PLURAL, "md-1")] = {
        "metadata": {"name": "md-1", "resourceVersion": "9"},
        "spec": {"replicas": 3},
    }

    assert kube.scale_machine_deployment("md-1", "default", -1) == 2

    _, plural, name, body = kube.custom.calls[-1]
    assert (plural, name) == (c.MACHINE_DEPLOYMENT_PLURAL, "md-1")
    assert body == {"metadata": {"resourceVersion": "9"}, "spec": {"replicas": 2}}


def test_server_errors_are_store_errors(kube):
    def boom(*a, **kw):
        raise ApiException(status=500, reason="Internal")

    kube.custom.get_namespaced_custom_object = boom
    with pytest.raises(StoreError):
        kube.get_machine("m", "default")


def test_namespace_from_kubeconfig(kubeconfig, tmp_path):
    assert namespace_from_kubeconfig(kubeconfig) == "tenant-a"

    bare = tmp_path / "bare"
    bare.write_text("current-context: x\ncontexts: []\n")
    assert namespace_from_kubeconfig(bare) == "default"


class DeletingCustom(FakeCustom):
    """Removes a deleting object once a write leaves it without finalizers."""

    def replace_namespaced_custom_object(self, group, version, namespace, plural, name, body):
        written = super().replace_namespaced_custom_object(group, version, namespace, plural, name, body)
        meta = written["metadata"]
        if meta.get("deletionTimestamp") and not meta.get("finalizers"):
            del self.objects[(plural, name)]
        return written

    def replace_namespaced_custom_object_status(self, group, version, namespace, plural, name, body):
        self.calls.append(("replace_status", plural, name))
        if (plural, name) not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        return super().replace_namespaced_custom_object(group, version, namespace, plural, name, body)


def test_releasing_last_finalizer_of_deleting_host_skips_status_write(kube):
    kube.custom = DeletingCustom()
    host = _host()
    host["metadata"]["deletionTimestamp"] = "2026-01-01T00:00:00Z"
    host["metadata"]["finalizers"] = [c.HOST_FINALIZER]
    kube.custom.objects[(c.HOST_PLURAL, "host-1")] = host

    released = kube.update_host("host-1", "default", lambda h: h.finalizers.remove(c.HOST_FINALIZER))

    assert released.finalizers == []
    assert [call[0] for call in kube.custom.calls] == ["get", "replace"]
    with pytest.raises(NotFoundError):
        kube.get_host("host-1", "default")
