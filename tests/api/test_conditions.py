from datetime import datetime, timezone

import pytest

from byohost.api import conditions
from byohost.api.conditions import BOOTSTRAP_SUCCEEDED, COMPONENTS_INSTALLED
from byohost.api.models import HostRecord


def test_transition_sets_status_and_severity_from_table():
    host = HostRecord(name="h")

    cond = conditions.transition(host, BOOTSTRAP_SUCCEEDED, conditions.BOOTSTRAP_EXECUTION_FAILED, "exit 1")

    assert (cond.status, cond.reason, cond.severity, cond.message) == ("False", "BootstrapExecutionFailed", "Error", "exit 1")
    assert conditions.get(host, BOOTSTRAP_SUCCEEDED) is cond


def test_completed_conditions_carry_a_reason():
    host = HostRecord(name="h")
    conditions.transition(host, COMPONENTS_INSTALLED, conditions.INSTALLATION_COMPLETED)
    assert conditions.is_true(host, COMPONENTS_INSTALLED)
    assert conditions.has_reason(host, COMPONENTS_INSTALLED, "InstallationCompleted")


def test_unknown_pair_is_rejected():
    with pytest.raises(conditions.UnknownTransitionError):
        conditions.transition(HostRecord(name="h"), COMPONENTS_INSTALLED, conditions.WAITING_FOR_CLAIM)


def test_transition_time_only_moves_on_status_change():
    host = HostRecord(name="h")
    first = conditions.transition(host, BOOTSTRAP_SUCCEEDED, conditions.WAITING_FOR_CLAIM)
    first.last_transition_time = datetime(2026, 1, 1, tzinfo=timezone.utc)

    same = conditions.transition(host, BOOTSTRAP_SUCCEEDED, conditions.BOOTSTRAP_SECRET_UNAVAILABLE)
    assert same.last_transition_time == datetime(2026, 1, 1, tzinfo=timezone.utc)

    flipped = conditions.transition(host, BOOTSTRAP_SUCCEEDED, conditions.BOOTSTRAP_COMPLETED)
    assert flipped.last_transition_time > datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_conditions_are_kept_sorted_and_unique():
    host = HostRecord(name="h")
    conditions.transition(host, COMPONENTS_INSTALLED, conditions.INSTALLATION_FAILED)
    conditions.transition(host, BOOTSTRAP_SUCCEEDED, conditions.BOOTSTRAP_COMPLETED)
    conditions.transition(host, COMPONENTS_INSTALLED, conditions.INSTALLATION_COMPLETED)

    assert [c.type for c in host.conditions] == [BOOTSTRAP_SUCCEEDED, COMPONENTS_INSTALLED]
