# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/agent/reconciler.py

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..api import conditions
from ..api import constants as c
from ..api.conditions import BOOTSTRAP_SUCCEEDED, COMPONENTS_INSTALLED
from ..api.models import HostRecord, ObjectReference
from ..api.patch import PatchHelper
from ..cloudinit.executor import ScriptExecutor
from ..cloudinit.file_writer import FileWriter
from ..cloudinit.template import TemplateParser
from ..errors import (
    ByohError,
    BootstrapError,
    CommandError,
    InstallationError,
    ResetError,
    ScriptExecutionError,
    SecretUnavailableError,
    UninstallError,
    UninstallationSecretMissingError,
)
from ..execution.runner import CommandRunner
from ..observers.dispatcher import EventBus
from ..store.errors import NotFoundError, StoreError
from ..store.interface import HostStore

log = logging.getLogger("byohost")

DEFAULT_RESET_COMMAND = "kubeadm reset --force"
DEFAULT_DOWNLOAD_PATH = "/var/lib/byoh/bundles"
DEFAULT_SENTINEL_FILE = "/run/cluster-api/bootstrap-success.complete"


@dataclass(frozen=True)
class Result:
    """Outcome of one pass. Failures are raised, not returned."""

    requeue: bool = False
    requeue_after: Optional[float] = None


class HostReconciler:
    """
    Drives the Host Record of the machine the agent runs on.

    Each ``reconcile`` call reads the record, performs at most one
    side-effecting step (bootstrap, install, or cleanup) and writes back the
    changed conditions, refs, labels and annotations. Whether a step already
    ran is decided from the record's conditions, so a second pass over a
    settled record never runs bootstrap or install commands again.

    One record must not be reconciled concurrently; the caller serializes.
    """

    def __init__(
        self,
        store: HostStore,
        runner: CommandRunner,
        writer: FileWriter,
        parser: TemplateParser,
        recorder: EventBus,
        *,
        skip_installation: bool = False,
        reset_command: str = DEFAULT_RESET_COMMAND,
        download_path: str = DEFAULT_DOWNLOAD_PATH,
        sentinel_file: Optional[str] = DEFAULT_SENTINEL_FILE,
    ):
        self.store = store
        self.runner = runner
        self.writer = writer
        self.parser = parser
        self.recorder = recorder
        self.executor = ScriptExecutor(runner, writer, parser)
        self.skip_installation = skip_installation
        self.reset_argv = shlex.split(reset_command)
        self.download_path = download_path
        self.sentinel_file = sentinel_file

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def reconcile(self, name: str, namespace: str) -> Result:
        try:
            host = self.store.get_host(name, namespace)
        except NotFoundError:
            log.info(f"[agent] {namespace}/{name} no longer exists, nothing to reconcile")
            return Result()
        helper = PatchHelper(host)

        try:
            result = self._reconcile(helper, host)
        except Exception:
            self._patch_after_failure(helper, host)
            raise

        helper.patch(self.store, host)
        return result

    def _reconcile(self, helper: PatchHelper, host: HostRecord) -> Result:
        if host.being_deleted:
            return self.reconcile_delete(host)
        if host.cleanup_requested:
            log.info(f"[agent] Cleanup requested for {host.key}")
            self.host_cleanup(host)
            return Result()
        return self.reconcile_normal(helper, host)

    def _patch_after_failure(self, helper: PatchHelper, host: HostRecord) -> None:
        # the step's own exception is what the caller needs to see
        try:
            helper.patch(self.store, host)
        except ByohError as exc:
            log.error(f"[agent] Failed to persist state of {host.key} after error: {exc}")

    # -------------------------------------------------------------------------
    # Installation direction
    # -------------------------------------------------------------------------

    def reconcile_normal(self, helper: PatchHelper, host: HostRecord) -> Result:
        if host.machine_ref is None:
            log.info(f"[agent] {host.key} is not claimed, waiting for a machine")
            conditions.transition(host, BOOTSTRAP_SUCCEEDED, conditions.WAITING_FOR_CLAIM)
            return Result()

        if not conditions.is_true(host, BOOTSTRAP_SUCCEEDED):
            if host.bootstrap_secret is None:
                conditions.transition(host, BOOTSTRAP_SUCCEEDED, conditions.BOOTSTRAP_SECRET_UNAVAILABLE)
                self.recorder.record(
                    host, c.EVENT_WARNING, c.EV_BOOTSTRAP_SECRET_UNAVAILABLE,
                    "bootstrap secret is not set yet",
                )
                raise SecretUnavailableError(f"bootstrap secret not set on {host.key}")

            self._ensure_finalizer(helper, host)
            self.bootstrap_node(host)
            # installation is the next pass
            return Result(requeue=not self.skip_installation)

        if self.skip_installation:
            log.debug(f"[agent] Skipping component installation on {host.key}")
            return Result()

        if not conditions.is_true(host, COMPONENTS_INSTALLED):
            self.install_components(host)
            return Result()

        log.debug(f"[agent] {host.key} is bootstrapped and installed, nothing to do")
        return Result()

    def bootstrap_node(self, host: HostRecord) -> None:
        ref = host.bootstrap_secret
        data = self._read_secret(
            host, ref, c.BOOTSTRAP_SECRET_KEY,
            condition=(BOOTSTRAP_SUCCEEDED, conditions.BOOTSTRAP_SECRET_UNAVAILABLE),
            event_reason=c.EV_READ_BOOTSTRAP_SECRET_FAILED,
            event_message=f"bootstrap secret {ref.name} not found",
        )

        log.info(f"[agent] Bootstrapping {host.key} from secret {ref.name}")
        try:
            self.executor.execute(data.decode(), self._template_context(host))
        except (CommandError, ScriptExecutionError, UnicodeDecodeError, OSError) as exc:
            conditions.transition(host, BOOTSTRAP_SUCCEEDED, conditions.BOOTSTRAP_EXECUTION_FAILED, str(exc))
            self.recorder.record(host, c.EVENT_WARNING, c.EV_BOOTSTRAP_FAILED, "node bootstrap failed")
            raise BootstrapError(f"bootstrap of {host.key} failed: {exc}") from exc

        conditions.transition(host, BOOTSTRAP_SUCCEEDED, conditions.BOOTSTRAP_COMPLETED)
        self.recorder.record(host, c.EVENT_NORMAL, c.EV_BOOTSTRAP_SUCCEEDED, "node bootstrapped")

    def install_components(self, host: HostRecord) -> None:
        ref = host.installation_secret
        if ref is None:
            conditions.transition(host, COMPONENTS_INSTALLED, conditions.INSTALLATION_SECRET_UNAVAILABLE)
            self.recorder.record(
                host, c.EVENT_WARNING, c.EV_INSTALLATION_SECRET_UNAVAILABLE,
                "installation secret is not set yet",
            )
            raise SecretUnavailableError(f"installation secret not set on {host.key}")

        unavailable = (COMPONENTS_INSTALLED, conditions.INSTALLATION_SECRET_UNAVAILABLE)
        message = f"install and uninstall script {ref.name} not found"
        install = self._read_secret(
            host, ref, c.INSTALL_SCRIPT_KEY,
            condition=unavailable, event_reason=c.EV_READ_INSTALLATION_SECRET_FAILED, event_message=message,
        )
        uninstall = self._read_secret(
            host, ref, c.UNINSTALL_SCRIPT_KEY,
            condition=unavailable, event_reason=c.EV_READ_INSTALLATION_SECRET_FAILED, event_message=message,
        )

        context = self._template_context(host)
        try:
            install_script = self.parser.parse(install.decode(), context)
            uninstall_script = self.parser.parse(uninstall.decode(), context)
        except (ScriptExecutionError, UnicodeDecodeError) as exc:
            conditions.transition(host, COMPONENTS_INSTALLED, conditions.INSTALLATION_FAILED, str(exc))
            self.recorder.record(host, c.EVENT_WARNING, c.EV_INSTALL_FAILED, "install script execution failed")
            raise InstallationError(f"installation on {host.key} failed: {exc}") from exc

        # saved before running so a successful install always has its reverse
        try:
            uninstall_ref = self.store.apply_secret(
                f"{c.UNINSTALL_SECRET_PREFIX}{host.name}",
                host.namespace,
                {c.UNINSTALL_SCRIPT_KEY: uninstall_script.encode()},
                owner=host.reference(),
            )
        except StoreError as exc:
            conditions.transition(host, COMPONENTS_INSTALLED, conditions.INSTALLATION_FAILED, str(exc))
            self.recorder.record(
                host, c.EVENT_WARNING, c.EV_SAVE_UNINSTALL_SECRET_FAILED,
                "could not save uninstall script",
            )
            raise InstallationError(f"saving uninstall script for {host.key} failed: {exc}") from exc

        log.info(f"[agent] Installing components on {host.key} from secret {ref.name}")
        try:
            self.runner.run_script(install_script)
        except CommandError as exc:
            conditions.transition(host, COMPONENTS_INSTALLED, conditions.INSTALLATION_FAILED, str(exc))
            self.recorder.record(host, c.EVENT_WARNING, c.EV_INSTALL_FAILED, "install script execution failed")
            raise InstallationError(f"installation on {host.key} failed: {exc}") from exc

        host.uninstallation_secret = uninstall_ref
        conditions.transition(host, COMPONENTS_INSTALLED, conditions.INSTALLATION_COMPLETED)
        self.recorder.record(host, c.EVENT_NORMAL, c.EV_INSTALL_SUCCEEDED, "install script executed")

    # -------------------------------------------------------------------------
    # Cleanup direction
    # -------------------------------------------------------------------------

    def host_cleanup(self, host: HostRecord) -> None:
        """
        Undo bootstrap and installation and release the host.

        A reset that already succeeded is recorded as BootstrapSucceeded=False
        with reason NodeAbsent, so a retry after a failed uninstall only runs
        the uninstall script again.
        """
        if conditions.is_true(host, COMPONENTS_INSTALLED):
            if not self.skip_installation and host.uninstallation_secret is None:
                self.recorder.record(
                    host, c.EVENT_WARNING, c.EV_UNINSTALL_SECRET_MISSING,
                    f"no uninstallation secret recorded on {host.name}",
                )
                raise UninstallationSecretMissingError(f"UninstallationSecret not found in host {host.name}")

            if conditions.has_reason(host, BOOTSTRAP_SUCCEEDED, conditions.NODE_ABSENT):
                log.info(f"[agent] {host.key} was already reset, retrying uninstall only")
            else:
                self.reset_node(host)

            if not self.skip_installation:
                self.uninstall_components(host)
        else:
            log.info(f"[agent] Components were never installed on {host.key}, skipping node reset")

        if self.sentinel_file:
            self.writer.remove(self.sentinel_file)

        self._release(host)
        self.recorder.record(host, c.EVENT_NORMAL, c.EV_CLEANUP_SUCCEEDED, "host cleanup completed")

    def reset_node(self, host: HostRecord) -> None:
        log.info(f"[agent] Resetting node {host.key}: {' '.join(self.reset_argv)}")
        try:
            self.runner.run_command(self.reset_argv)
        except CommandError as exc:
            self.recorder.record(host, c.EVENT_WARNING, c.EV_RESET_FAILED, "node reset failed")
            raise ResetError(f"failed to exec {self.reset_argv[0]} reset: {exc}") from exc

        conditions.transition(host, BOOTSTRAP_SUCCEEDED, conditions.NODE_ABSENT, "node reset completed")
        self.recorder.record(host, c.EVENT_NORMAL, c.EV_RESET_SUCCEEDED, "node reset completed")

    def uninstall_components(self, host: HostRecord) -> None:
        ref = host.uninstallation_secret
        try:
            secret = self.store.get_secret(ref.name, ref.namespace or host.namespace)
        except StoreError as exc:
            self.recorder.record(
                host, c.EVENT_WARNING, c.EV_UNINSTALL_SECRET_MISSING,
                f"uninstall script {ref.name} not found",
            )
            raise SecretUnavailableError(f"uninstall script {ref.name} unavailable: {exc}") from exc

        script = secret.get(c.UNINSTALL_SCRIPT_KEY)
        if script is None:
            self.recorder.record(
                host, c.EVENT_WARNING, c.EV_UNINSTALL_SECRET_MISSING,
                f"uninstall script {ref.name} has no {c.UNINSTALL_SCRIPT_KEY} key",
            )
            raise SecretUnavailableError(f"secret {ref.name} has no {c.UNINSTALL_SCRIPT_KEY} key")

        log.info(f"[agent] Uninstalling components from {host.key}")
        try:
            self.runner.run_script(script.decode())
        except (CommandError, UnicodeDecodeError) as exc:
            self.recorder.record(host, c.EVENT_WARNING, c.EV_UNINSTALL_FAILED, "uninstall script execution failed")
            raise UninstallError(f"uninstall on {host.key} failed: {exc}") from exc

    def reconcile_delete(self, host: HostRecord) -> Result:
        if c.HOST_FINALIZER not in host.finalizers:
            return Result()
        log.info(f"[agent] {host.key} is being deleted, cleaning up")
        self.host_cleanup(host)
        return Result()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _release(self, host: HostRecord) -> None:
        host.labels.pop(c.CLUSTER_NAME_LABEL, None)
        for key in c.HOST_ANNOTATIONS:
            host.annotations.pop(key, None)
        host.machine_ref = None
        host.bootstrap_secret = None
        host.installation_secret = None
        host.uninstallation_secret = None
        conditions.transition(host, BOOTSTRAP_SUCCEEDED, conditions.NODE_ABSENT)
        conditions.transition(host, COMPONENTS_INSTALLED, conditions.NODE_ABSENT)
        host.finalizers = [f for f in host.finalizers if f != c.HOST_FINALIZER]

    def _ensure_finalizer(self, helper: PatchHelper, host: HostRecord) -> None:
        if c.HOST_FINALIZER in host.finalizers:
            return
        host.finalizers.append(c.HOST_FINALIZER)
        helper.patch(self.store, host)

    def _read_secret(
        self,
        host: HostRecord,
        ref: ObjectReference,
        key: str,
        *,
        condition: tuple,
        event_reason: str,
        event_message: str,
    ) -> bytes:
        try:
            data = self.store.get_secret(ref.name, ref.namespace or host.namespace)
            value = data[key]
        except (StoreError, KeyError) as exc:
            conditions.transition(host, *condition, f"secret {ref.name}: {exc}")
            self.recorder.record(host, c.EVENT_WARNING, event_reason, event_message)
            raise SecretUnavailableError(f"secret {ref.name} unavailable for {host.key}: {exc}") from exc
        return value

    def _template_context(self, host: HostRecord) -> Dict[str, Any]:
        return {
            "bundle_download_path": self.download_path,
            "k8s_version": host.annotations.get(c.K8S_VERSION_ANNOTATION, ""),
            "bundle_registry": host.annotations.get(c.BUNDLE_REGISTRY_ANNOTATION, ""),
            "host_name": host.name,
        }
