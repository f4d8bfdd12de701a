# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/errors.py

from __future__ import annotations

from typing import Optional, Sequence


class ByohError(RuntimeError):
    """Base class for host lifecycle failures."""


# ------------------------------------------------------------------------------
# Preconditions
# ------------------------------------------------------------------------------

class PreconditionError(ByohError):
    """Something the step depends on is missing. Not fixed by retrying in-process."""


class HostNotFoundError(PreconditionError):
    pass


class HostNotClaimedError(PreconditionError):
    pass


class SecretUnavailableError(PreconditionError):
    pass


class UninstallationSecretMissingError(PreconditionError):
    """
    Cleanup was requested for an installed host that has no uninstall script
    recorded. Needs the agent restarted or the host re-onboarded.
    """


class CredentialsMissingError(PreconditionError):
    pass


# ------------------------------------------------------------------------------
# Execution
# ------------------------------------------------------------------------------

class CommandError(ByohError):
    def __init__(self, argv: Sequence[str], returncode: Optional[int], output: str = "", stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
        self.stderr = stderr
        detail = (stderr or output or "").strip()
        msg = f"command {self.argv[0] if self.argv else '?'} exited with {returncode}"
        if detail:
            msg += f": {detail.splitlines()[-1]}"
        super().__init__(msg)


class ScriptExecutionError(ByohError):
    """Bootstrap document could not be parsed or applied."""


class BootstrapError(ByohError):
    pass


class InstallationError(ByohError):
    pass


class ResetError(ByohError):
    pass


class UninstallError(ByohError):
    pass


# ------------------------------------------------------------------------------
# Workflow
# ------------------------------------------------------------------------------

class ConvergenceTimeoutError(ByohError):
    def __init__(self, what: str, timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(f"timed out after {timeout_s:.0f}s waiting for {what}")


class OperationCancelledError(ByohError):
    """The operator declined a confirmation that the operation needs."""
