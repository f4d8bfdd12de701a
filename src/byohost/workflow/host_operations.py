# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/workflow/host_operations.py

from __future__ import annotations

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..api import constants as c
from ..api.models import ObjectReference
from ..errors import (
    ByohError,
    ConvergenceTimeoutError,
    CredentialsMissingError,
    HostNotClaimedError,
    HostNotFoundError,
    OperationCancelledError,
)
from ..store.errors import NotFoundError, StoreError
from ..store.interface import ClusterStore
from ..store.kube import namespace_from_kubeconfig

log = logging.getLogger("byohost")


class OperationType(str, Enum):
    DETACH = "detach"
    DECOMMISSION = "decommission"


def _owner(obj: Dict[str, Any], kind: str) -> Optional[str]:
    for ref in (obj.get("metadata") or {}).get("ownerReferences") or []:
        if ref.get("kind") == kind:
            return ref.get("name")
    return None


def _name(obj: Dict[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("name", "")


class HostOperationWorkflow:
    """
    Detach this machine from its cluster, or decommission it entirely.

    Runs from the host itself with the kubeconfig the agent was onboarded
    with. The workflow never removes the node directly: it marks the claim
    (Machine) for deletion and scales its MachineDeployment down by one,
    then waits for the agent to release the Host Record.

    Every step re-reads current state, so an interrupted run can simply be
    started again.
    """

    def __init__(
        self,
        store_factory: Callable[[Path], ClusterStore],
        *,
        kubeconfig: str | Path,
        host_name: str,
        confirm: Callable[[str], bool],
        purge: Callable[[], None],
        timeout: float = 300,
        interval: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store_factory = store_factory
        self.kubeconfig = Path(kubeconfig).expanduser()
        self.host_name = host_name
        self.confirm = confirm
        self.purge = purge
        self.timeout = timeout
        self.interval = interval
        self.sleep = sleep
        self.clock = clock

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def perform(self, kind: OperationType | str, namespace: Optional[str] = None) -> None:
        kind = OperationType(kind)

        if not self.kubeconfig.is_file():
            raise CredentialsMissingError(
                f"kubeconfig file not found at {self.kubeconfig}. Please onboard the host first."
            )

        namespace = namespace or namespace_from_kubeconfig(self.kubeconfig)
        log.info(f"[{kind.value}] Host {self.host_name} in namespace {namespace}")
        store = self.store_factory(self.kubeconfig)

        try:
            host = store.get_host(self.host_name, namespace)
        except NotFoundError as exc:
            log.warning(f"[{kind.value}] Host record not found in the management plane: {exc}")
            if kind is OperationType.DECOMMISSION:
                if not self.confirm("Do you want to proceed with host cleanup?"):
                    log.info(f"[{kind.value}] Local cleanup declined")
                    return
                self.purge()
                log.info(f"[{kind.value}] Local agent package purged")
                return
            raise HostNotFoundError(
                "Cannot proceed with detach. Either restart the agent service "
                "or decommission and re-onboard."
            ) from exc

        if host.machine_ref is None:
            if kind is OperationType.DECOMMISSION:
                log.info(f"[{kind.value}] Host is not part of any cluster")
                self._remove(store, namespace)
                return
            raise HostNotClaimedError(
                f"machineRef is not set on {host.key}. This host is not part of a cluster, nothing to detach."
            )

        self.release(store, host.machine_ref, namespace)
        self.wait_for_release(store, namespace)

        if kind is OperationType.DECOMMISSION:
            self._remove(store, namespace)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def release(self, store: ClusterStore, ref: ObjectReference, namespace: str) -> None:
        """Select the claim for deletion and scale its group down by one."""
        machine = self.resolve_machine(store, ref, namespace)
        machine_name = _name(machine)
        deployment = self.resolve_deployment(store, machine, namespace)
        replicas = int((deployment.get("spec") or {}).get("replicas") or 0)
        log.info(f"[release] Machine {machine_name} belongs to {_name(deployment)} ({replicas} replicas)")

        if replicas == 1:
            log.warning("[release] This is the last node in its MachineDeployment")
            if not self.confirm("This is the last node in the cluster. Do you want to continue?"):
                raise OperationCancelledError("operation cancelled by user")
            store.annotate_machine(machine_name, namespace, c.EXCLUDE_NODE_DRAINING_ANNOTATION, "")

        # a fresh read, the annotation above bumped the resourceVersion
        machine = store.get_machine(machine_name, namespace)
        store.annotate_machine(_name(machine), namespace, c.DELETE_MACHINE_ANNOTATION, "yes")
        log.info(f"[release] Marked Machine {machine_name} for deletion")

        store.scale_machine_deployment(_name(deployment), namespace, -1)

    def resolve_machine(self, store: ClusterStore, ref: ObjectReference, namespace: str) -> Dict[str, Any]:
        if ref.kind == c.MACHINE_KIND:
            return store.get_machine(ref.name, namespace)
        try:
            infra = store.get_infra_machine(ref.name, namespace)
        except NotFoundError:
            log.debug(f"[release] No {c.INFRA_MACHINE_KIND} {ref.name}, trying a Machine of the same name")
            return store.get_machine(ref.name, namespace)
        return store.get_machine(_owner(infra, c.MACHINE_KIND) or ref.name, namespace)

    def resolve_deployment(self, store: ClusterStore, machine: Dict[str, Any], namespace: str) -> Dict[str, Any]:
        labels = (machine.get("metadata") or {}).get("labels") or {}
        name = labels.get(c.DEPLOYMENT_NAME_LABEL)
        if not name:
            machine_set = _owner(machine, c.MACHINE_SET_KIND)
            if machine_set:
                name = _owner(store.get_machine_set(machine_set, namespace), c.MACHINE_DEPLOYMENT_KIND)
        if not name:
            raise ByohError(f"Machine {_name(machine)} is not owned by a MachineDeployment")
        return store.get_machine_deployment(name, namespace)

    def wait_for_release(self, store: ClusterStore, namespace: str) -> None:
        """Poll the Host Record until the agent has cleared MachineRef."""
        deadline = self.clock() + self.timeout
        while True:
            try:
                host = store.get_host(self.host_name, namespace)
            except NotFoundError:
                raise
            except StoreError as exc:
                log.warning(f"[release] Reading {namespace}/{self.host_name} failed, polling again: {exc}")
                host = None
            if host is not None and host.machine_ref is None:
                log.info(f"[release] MachineRef unset on {host.key}")
                return
            if self.clock() >= deadline:
                raise ConvergenceTimeoutError(f"machineRef to be unset on {namespace}/{self.host_name}", self.timeout)
            self.sleep(self.interval)

    def _remove(self, store: ClusterStore, namespace: str) -> None:
        try:
            store.delete_host(self.host_name, namespace)
        except NotFoundError:
            log.info(f"[decommission] Host record {namespace}/{self.host_name} already gone")
        self.purge()
        log.info("[decommission] Host record deleted and agent package purged")
