# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/store/interface.py

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, Optional, Protocol

from ..api.models import HostRecord, ObjectReference


class HostStore(Protocol):
    """
    What the agent needs from the management cluster: Host Records and the
    secrets they reference.
    """

    def get_host(self, name: str, namespace: str) -> HostRecord:
        """Raise NotFoundError if the record does not exist."""
        ...

    def create_host(self, host: HostRecord) -> HostRecord: ...

    def update_host(
        self,
        name: str,
        namespace: str,
        mutate: Callable[[HostRecord], None],
    ) -> HostRecord:
        """
        Re-read the record, apply ``mutate`` to the fresh copy and write it
        back with the read resourceVersion. Retries on conflict.
        """
        ...

    def delete_host(self, name: str, namespace: str) -> None: ...

    def watch_host(self, name: str, namespace: str, timeout_seconds: int) -> Iterator[HostRecord]:
        """Yield the record each time it changes, until ``timeout_seconds`` pass."""
        ...

    def get_secret(self, name: str, namespace: str) -> Dict[str, bytes]: ...

    def apply_secret(
        self,
        name: str,
        namespace: str,
        data: Dict[str, bytes],
        owner: Optional[ObjectReference] = None,
    ) -> ObjectReference:
        """Create or replace a secret, returning a reference to it."""
        ...


class ClusterStore(HostStore, Protocol):
    """HostStore plus the Cluster API objects the detach workflow touches."""

    def get_infra_machine(self, name: str, namespace: str) -> Dict[str, Any]: ...

    def get_machine(self, name: str, namespace: str) -> Dict[str, Any]: ...

    def annotate_machine(self, name: str, namespace: str, key: str, value: str) -> None: ...

    def get_machine_set(self, name: str, namespace: str) -> Dict[str, Any]: ...

    def get_machine_deployment(self, name: str, namespace: str) -> Dict[str, Any]: ...

    def scale_machine_deployment(self, name: str, namespace: str, delta: int) -> int:
        """Change spec.replicas by ``delta`` and return the new count."""
        ...
