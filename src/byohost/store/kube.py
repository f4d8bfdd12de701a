# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/store/kube.py

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

import yaml
from kubernetes import client, config, watch
from kubernetes.client.exceptions import ApiException

from ..api import constants as c
from ..api.models import HostRecord, ObjectReference
from ..utils.retry import retry
from .errors import ConflictError, NotFoundError, StoreError

log = logging.getLogger("byohost")

CONFLICT_RETRIES = 5
CONFLICT_DELAY = 0.1


def _translate(exc: ApiException, what: str) -> StoreError:
    if exc.status == 404:
        return NotFoundError(f"{what} not found")
    if exc.status == 409:
        return ConflictError(f"{what} was modified concurrently")
    return StoreError(f"{what}: {exc.status} {exc.reason}")


def namespace_from_kubeconfig(path: str | Path) -> str:
    """Namespace of the current context in a kubeconfig file, or "default"."""
    data = yaml.safe_load(Path(path).read_text()) or {}
    current = data.get("current-context")
    for ctx in data.get("contexts") or []:
        if ctx.get("name") == current:
            return (ctx.get("context") or {}).get("namespace") or "default"
    return "default"


class KubeStore:
    """
    ClusterStore backed by the management cluster API.

    ByoHost, ByoMachine and the Cluster API objects are read as unstructured
    dicts through CustomObjectsApi; secrets go through CoreV1Api.
    """

    def __init__(self, api_client: client.ApiClient):
        self.api_client = api_client
        self.custom = client.CustomObjectsApi(api_client)
        self.core = client.CoreV1Api(api_client)

    @classmethod
    def from_kubeconfig(cls, kubeconfig: str | Path | None = None, context: Optional[str] = None) -> "KubeStore":
        if kubeconfig:
            api_client = config.new_client_from_config(config_file=str(kubeconfig), context=context)
        else:
            config.load_incluster_config()
            api_client = client.ApiClient()
        return cls(api_client)

    # -------------------------------------------------------------------------
    # Host Records
    # -------------------------------------------------------------------------

    def _get_host_raw(self, name: str, namespace: str) -> Dict[str, Any]:
        try:
            return self.custom.get_namespaced_custom_object(
                c.INFRA_GROUP, c.INFRA_VERSION, namespace, c.HOST_PLURAL, name
            )
        except ApiException as exc:
            raise _translate(exc, f"{c.HOST_PLURAL}.{c.INFRA_GROUP} {namespace}/{name}") from exc

    def get_host(self, name: str, namespace: str) -> HostRecord:
        return HostRecord.from_manifest(self._get_host_raw(name, namespace))

    def create_host(self, host: HostRecord) -> HostRecord:
        body = host.to_manifest()
        body["metadata"].pop("resourceVersion", None)
        try:
            created = self.custom.create_namespaced_custom_object(
                c.INFRA_GROUP, c.INFRA_VERSION, host.namespace, c.HOST_PLURAL, body
            )
        except ApiException as exc:
            raise _translate(exc, f"create {c.HOST_KIND} {host.key}") from exc
        log.info(f"[store] Registered {c.HOST_KIND} {host.key}")
        return HostRecord.from_manifest(created)

    @retry(retries=CONFLICT_RETRIES, delay=CONFLICT_DELAY, retry_on=(ConflictError,))
    def update_host(
        self,
        name: str,
        namespace: str,
        mutate: Callable[[HostRecord], None],
    ) -> HostRecord:
        fresh = self.get_host(name, namespace)
        mutate(fresh)
        body = fresh.to_manifest()
        what = f"{c.HOST_KIND} {namespace}/{name}"
        # the API server removes a deleting object once its last finalizer is gone
        released = fresh.being_deleted and not fresh.finalizers

        try:
            written = self.custom.replace_namespaced_custom_object(
                c.INFRA_GROUP, c.INFRA_VERSION, namespace, c.HOST_PLURAL, name, body
            )
            if released:
                log.info(f"[store] Released last finalizer of {what}, it is now deleted")
                return fresh
            # status is a subresource; the main write ignores it
            body["metadata"]["resourceVersion"] = written["metadata"]["resourceVersion"]
            written = self.custom.replace_namespaced_custom_object_status(
                c.INFRA_GROUP, c.INFRA_VERSION, namespace, c.HOST_PLURAL, name, body
            )
        except ApiException as exc:
            raise _translate(exc, what) from exc

        log.debug(f"[store] Patched {what} -> rv={written['metadata'].get('resourceVersion')}")
        return HostRecord.from_manifest(written)

    def delete_host(self, name: str, namespace: str) -> None:
        try:
            self.custom.delete_namespaced_custom_object(
                c.INFRA_GROUP, c.INFRA_VERSION, namespace, c.HOST_PLURAL, name
            )
        except ApiException as exc:
            raise _translate(exc, f"{c.HOST_KIND} {namespace}/{name}") from exc
        log.info(f"[store] Deleted {c.HOST_KIND} {namespace}/{name}")

    def watch_host(self, name: str, namespace: str, timeout_seconds: int) -> Iterator[HostRecord]:
        w = watch.Watch()
        try:
            for ev in w.stream(
                self.custom.list_namespaced_custom_object,
                c.INFRA_GROUP,
                c.INFRA_VERSION,
                namespace,
                c.HOST_PLURAL,
                field_selector=f"metadata.name={name}",
                timeout_seconds=timeout_seconds,
            ):
                if ev.get("type") == "DELETED":
                    continue
                yield HostRecord.from_manifest(ev["object"])
        except ApiException as exc:
            raise _translate(exc, f"watch {c.HOST_KIND} {namespace}/{name}") from exc
        finally:
            w.stop()

    # -------------------------------------------------------------------------
    # Secrets
    # -------------------------------------------------------------------------

    def get_secret(self, name: str, namespace: str) -> Dict[str, bytes]:
        try:
            secret = self.core.read_namespaced_secret(name, namespace)
        except ApiException as exc:
            raise _translate(exc, f"secret {namespace}/{name}") from exc
        return {k: base64.b64decode(v) for k, v in (secret.data or {}).items()}

    def apply_secret(
        self,
        name: str,
        namespace: str,
        data: Dict[str, bytes],
        owner: Optional[ObjectReference] = None,
    ) -> ObjectReference:
        owners = None
        if owner is not None and owner.uid:
            owners = [
                client.V1OwnerReference(
                    api_version=owner.api_version,
                    kind=owner.kind,
                    name=owner.name,
                    uid=owner.uid,
                )
            ]

        body = client.V1Secret(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace, owner_references=owners),
            data={k: base64.b64encode(v).decode() for k, v in data.items()},
            type="Opaque",
        )

        try:
            self.core.create_namespaced_secret(namespace, body)
        except ApiException as exc:
            if exc.status != 409:
                raise _translate(exc, f"secret {namespace}/{name}") from exc
            try:
                self.core.replace_namespaced_secret(name, namespace, body)
            except ApiException as exc2:
                raise _translate(exc2, f"secret {namespace}/{name}") from exc2

        return ObjectReference(kind="Secret", name=name, namespace=namespace)

    # -------------------------------------------------------------------------
    # Cluster API objects
    # -------------------------------------------------------------------------

    def _get(self, group: str, version: str, plural: str, name: str, namespace: str) -> Dict[str, Any]:
        try:
            return self.custom.get_namespaced_custom_object(group, version, namespace, plural, name)
        except ApiException as exc:
            raise _translate(exc, f"{plural}.{group} {namespace}/{name}") from exc

    def get_infra_machine(self, name: str, namespace: str) -> Dict[str, Any]:
        return self._get(c.INFRA_GROUP, c.INFRA_VERSION, c.INFRA_MACHINE_PLURAL, name, namespace)

    def get_machine(self, name: str, namespace: str) -> Dict[str, Any]:
        return self._get(c.CAPI_GROUP, c.CAPI_VERSION, c.MACHINE_PLURAL, name, namespace)

    def get_machine_set(self, name: str, namespace: str) -> Dict[str, Any]:
        return self._get(c.CAPI_GROUP, c.CAPI_VERSION, c.MACHINE_SET_PLURAL, name, namespace)

    def get_machine_deployment(self, name: str, namespace: str) -> Dict[str, Any]:
        return self._get(c.CAPI_GROUP, c.CAPI_VERSION, c.MACHINE_DEPLOYMENT_PLURAL, name, namespace)

    def annotate_machine(self, name: str, namespace: str, key: str, value: str) -> None:
        body = {"metadata": {"annotations": {key: value}}}
        try:
            self.custom.patch_namespaced_custom_object(
                c.CAPI_GROUP, c.CAPI_VERSION, namespace, c.MACHINE_PLURAL, name, body
            )
        except ApiException as exc:
            raise _translate(exc, f"annotate {c.MACHINE_KIND} {namespace}/{name}") from exc
        log.debug(f"[store] Annotated {c.MACHINE_KIND} {namespace}/{name} {key}={value!r}")

    @retry(retries=CONFLICT_RETRIES, delay=CONFLICT_DELAY, retry_on=(ConflictError,))
    def scale_machine_deployment(self, name: str, namespace: str, delta: int) -> int:
        md = self.get_machine_deployment(name, namespace)
        current = int((md.get("spec") or {}).get("replicas") or 0)
        replicas = max(current + delta, 0)
        body = {
            "metadata": {"resourceVersion": md["metadata"]["resourceVersion"]},
            "spec": {"replicas": replicas},
        }
        try:
            self.custom.patch_namespaced_custom_object(
                c.CAPI_GROUP, c.CAPI_VERSION, namespace, c.MACHINE_DEPLOYMENT_PLURAL, name, body
            )
        except ApiException as exc:
            raise _translate(exc, f"scale {c.MACHINE_DEPLOYMENT_KIND} {namespace}/{name}") from exc
        log.info(f"[store] Scaled {c.MACHINE_DEPLOYMENT_KIND} {namespace}/{name} {current} -> {replicas}")
        return replicas
