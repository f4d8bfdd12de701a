# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/api/patch.py

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import HostRecord

if TYPE_CHECKING:
    from ..store.interface import HostStore


def _merge_map(before: dict, after: dict, fresh: dict) -> dict:
    out = dict(fresh)
    for k in before.keys() - after.keys():
        out.pop(k, None)
    for k, v in after.items():
        if k not in before or before[k] != v:
            out[k] = v
    return out


class PatchHelper:
    """
    Records a Host Record as it was read and later writes back only what the
    caller changed.

    ``patch`` re-reads the object from the store and replays the diff on the
    fresh copy, so labels or annotations written concurrently by someone
    else (the claim controller, the operator tool) are not clobbered.
    """

    def __init__(self, host: HostRecord):
        self.before = host.model_copy(deep=True)

    def changed(self, after: HostRecord) -> bool:
        b = self.before.model_dump(exclude={"raw", "resource_version"})
        a = after.model_dump(exclude={"raw", "resource_version"})
        return a != b

    def apply(self, after: HostRecord, fresh: HostRecord) -> None:
        before = self.before

        fresh.labels = _merge_map(before.labels, after.labels, fresh.labels)
        fresh.annotations = _merge_map(before.annotations, after.annotations, fresh.annotations)

        finalizers = [f for f in fresh.finalizers if f not in set(before.finalizers) - set(after.finalizers)]
        for f in after.finalizers:
            if f not in before.finalizers and f not in finalizers:
                finalizers.append(f)
        fresh.finalizers = finalizers

        for field in ("bootstrap_secret", "installation_secret", "uninstallation_secret", "machine_ref"):
            if getattr(before, field) != getattr(after, field):
                setattr(fresh, field, getattr(after, field))

        before_conds = {c.type: c for c in before.conditions}
        merged = {c.type: c for c in fresh.conditions}
        for c in after.conditions:
            if before_conds.get(c.type) != c:
                merged[c.type] = c
        fresh.conditions = sorted(merged.values(), key=lambda c: c.type)

    def patch(self, store: "HostStore", after: HostRecord) -> HostRecord:
        if not self.changed(after):
            return after

        updated = store.update_host(
            after.name,
            after.namespace,
            lambda fresh: self.apply(after, fresh),
        )
        # diff later changes against what the caller holds, not the store copy
        self.before = after.model_copy(deep=True)
        return updated
