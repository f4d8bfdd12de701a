# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/api/conditions.py

"""
Condition vocabulary for a Host Record.

Conditions are plain data: a condition type plus a reason. Every state the
agent can put a host in is one (type, reason) pair from ``TRANSITIONS``, which
also fixes the status and severity that pair carries. Writing a pair that is
not in the table is a programming error.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from .models import Condition, HostRecord

# ------------------------------------------------------------------------------
# Types
# ------------------------------------------------------------------------------

BOOTSTRAP_SUCCEEDED = "BootstrapSucceeded"
COMPONENTS_INSTALLED = "ComponentsInstalled"

# ------------------------------------------------------------------------------
# Reasons
# ------------------------------------------------------------------------------

WAITING_FOR_CLAIM = "WaitingForClaim"
BOOTSTRAP_SECRET_UNAVAILABLE = "BootstrapSecretUnavailable"
BOOTSTRAP_EXECUTION_FAILED = "BootstrapExecutionFailed"
BOOTSTRAP_COMPLETED = "BootstrapCompleted"

INSTALLATION_SECRET_UNAVAILABLE = "InstallationSecretUnavailable"
INSTALLATION_FAILED = "InstallationFailed"
INSTALLATION_COMPLETED = "InstallationCompleted"

NODE_ABSENT = "NodeAbsent"

TRUE = "True"
FALSE = "False"
UNKNOWN = "Unknown"

SEVERITY_NONE = ""
SEVERITY_INFO = "Info"
SEVERITY_WARNING = "Warning"
SEVERITY_ERROR = "Error"

# (type, reason) -> (status, severity)
TRANSITIONS: Dict[Tuple[str, str], Tuple[str, str]] = {
    (BOOTSTRAP_SUCCEEDED, WAITING_FOR_CLAIM): (FALSE, SEVERITY_INFO),
    (BOOTSTRAP_SUCCEEDED, BOOTSTRAP_SECRET_UNAVAILABLE): (FALSE, SEVERITY_INFO),
    (BOOTSTRAP_SUCCEEDED, BOOTSTRAP_EXECUTION_FAILED): (FALSE, SEVERITY_ERROR),
    (BOOTSTRAP_SUCCEEDED, BOOTSTRAP_COMPLETED): (TRUE, SEVERITY_NONE),
    (BOOTSTRAP_SUCCEEDED, NODE_ABSENT): (FALSE, SEVERITY_INFO),
    (COMPONENTS_INSTALLED, INSTALLATION_SECRET_UNAVAILABLE): (FALSE, SEVERITY_INFO),
    (COMPONENTS_INSTALLED, INSTALLATION_FAILED): (FALSE, SEVERITY_ERROR),
    (COMPONENTS_INSTALLED, INSTALLATION_COMPLETED): (TRUE, SEVERITY_NONE),
    (COMPONENTS_INSTALLED, NODE_ABSENT): (FALSE, SEVERITY_INFO),
}


class UnknownTransitionError(ValueError):
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def get(host: HostRecord, condition_type: str) -> Optional[Condition]:
    for c in host.conditions:
        if c.type == condition_type:
            return c
    return None


def is_true(host: HostRecord, condition_type: str) -> bool:
    c = get(host, condition_type)
    return c is not None and c.status == TRUE


def has_reason(host: HostRecord, condition_type: str, reason: str) -> bool:
    c = get(host, condition_type)
    return c is not None and c.reason == reason


def set_condition(host: HostRecord, condition: Condition) -> None:
    """
    Insert or replace ``condition`` on the host.

    lastTransitionTime only moves when the status actually changes.
    """
    existing = get(host, condition.type)
    if existing is not None and existing.status == condition.status:
        condition.last_transition_time = existing.last_transition_time or _now()
    elif condition.last_transition_time is None:
        condition.last_transition_time = _now()

    host.conditions = [c for c in host.conditions if c.type != condition.type]
    host.conditions.append(condition)
    host.conditions.sort(key=lambda c: c.type)


def transition(
    host: HostRecord,
    condition_type: str,
    reason: str,
    message: str = "",
) -> Condition:
    """Move ``condition_type`` to the state named by ``reason``."""
    try:
        status, severity = TRANSITIONS[(condition_type, reason)]
    except KeyError:
        raise UnknownTransitionError(
            f"no transition for condition {condition_type} with reason {reason}"
        ) from None

    cond = Condition(
        type=condition_type,
        status=status,
        reason=reason,
        severity=severity,
        message=message,
    )
    set_condition(host, cond)
    return cond
