# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/agent/loop.py

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from ..api.models import HostRecord
from ..errors import ByohError
from ..store.errors import NotFoundError
from ..store.interface import HostStore
from .reconciler import HostReconciler

log = logging.getLogger("byohost")


class AgentLoop:
    """
    Single-flight driver for the agent's own Host Record.

    One loop owns one record, so reconcile passes never overlap. A pass is
    triggered by a watch event on the record or by the resync tick when the
    watch times out. Failed passes are retried with exponential backoff.
    """

    def __init__(
        self,
        store: HostStore,
        reconciler: HostReconciler,
        host_name: str,
        namespace: str,
        *,
        resync_seconds: int = 60,
        backoff_base: float = 1.0,
        backoff_max: float = 300.0,
        labels: Optional[Dict[str, str]] = None,
    ):
        self.store = store
        self.reconciler = reconciler
        self.host_name = host_name
        self.namespace = namespace
        self.resync_seconds = resync_seconds
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.labels = dict(labels or {})

        self.failures = 0
        self.last_error: Optional[Exception] = None
        self._seen_version: Optional[str] = None

    def register(self) -> HostRecord:
        """Create the Host Record for this machine unless it already exists."""
        try:
            return self.store.get_host(self.host_name, self.namespace)
        except NotFoundError:
            log.info(f"[agent] Registering host {self.namespace}/{self.host_name}")
            return self.store.create_host(
                HostRecord(name=self.host_name, namespace=self.namespace, labels=dict(self.labels))
            )

    def backoff(self) -> float:
        return min(self.backoff_base * 2 ** self.failures, self.backoff_max)

    def run_once(self) -> Optional[float]:
        """
        Reconcile until no immediate requeue is asked for.

        Returns the delay before the next forced pass, or None when the next
        pass should wait for a change to the record.
        """
        while True:
            try:
                result = self.reconciler.reconcile(self.host_name, self.namespace)
            except (ByohError, OSError) as exc:
                delay = self.backoff()
                self.failures += 1
                self.last_error = exc
                log.error(f"[agent] Reconcile of {self.namespace}/{self.host_name} failed, retrying in {delay:.1f}s: {exc}")
                return delay

            self.failures = 0
            self.last_error = None
            if not result.requeue:
                break
            log.debug("[agent] Requeue requested, reconciling again")

        self._remember_version()
        return result.requeue_after

    def _remember_version(self) -> None:
        try:
            self._seen_version = self.store.get_host(self.host_name, self.namespace).resource_version
        except NotFoundError:
            self._seen_version = None

    def wait_for_change(self, stop: threading.Event) -> None:
        """Block until the record changes, the resync period passes, or ``stop`` is set."""
        for host in self.store.watch_host(self.host_name, self.namespace, self.resync_seconds):
            if stop.is_set():
                return
            if host.resource_version and host.resource_version == self._seen_version:
                continue
            log.debug(f"[agent] {host.key} changed (rv={host.resource_version})")
            return

    def run(self, stop: Optional[threading.Event] = None) -> None:
        stop = stop or threading.Event()
        self.register()
        log.info(f"[agent] Watching {self.namespace}/{self.host_name}")

        while not stop.is_set():
            delay = self.run_once()
            if stop.is_set():
                break
            if delay is not None:
                stop.wait(delay)
                continue
            try:
                self.wait_for_change(stop)
            except ByohError as exc:
                log.warning(f"[agent] Watch interrupted: {exc}")
                stop.wait(self.backoff_base)

        log.info("[agent] Stopped")
