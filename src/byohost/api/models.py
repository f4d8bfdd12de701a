# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/api/models.py

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .constants import HOST_CLEANUP_ANNOTATION, HOST_KIND, INFRA_GROUP, INFRA_VERSION

ConditionStatus = Literal["True", "False", "Unknown"]
ConditionSeverity = Literal["", "Info", "Warning", "Error"]


class ObjectReference(BaseModel):
    """Reference to another object (secret, machine) by name."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: str = ""
    name: str
    namespace: str = ""
    api_version: Optional[str] = Field(default=None, alias="apiVersion")
    uid: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Condition(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    status: ConditionStatus = "Unknown"
    reason: str = ""
    severity: ConditionSeverity = ""
    message: str = ""
    last_transition_time: Optional[datetime] = Field(default=None, alias="lastTransitionTime")

    def to_dict(self) -> Dict[str, Any]:
        d = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        # the API server wants RFC3339 without fractional seconds
        if self.last_transition_time is not None:
            d["lastTransitionTime"] = self.last_transition_time.strftime("%Y-%m-%dT%H:%M:%SZ")
        return d


class HostRecord(BaseModel):
    """
    One bring-your-own host as stored in the management cluster.

    Flattened view of the ByoHost object: metadata, the three secret refs
    from spec and MachineRef/conditions from status. ``raw`` keeps the
    manifest it was read from so fields we don't model survive a round trip.
    """

    model_config = ConfigDict(extra="ignore")

    name: str
    namespace: str = "default"
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    finalizers: List[str] = Field(default_factory=list)
    resource_version: Optional[str] = None
    uid: Optional[str] = None
    deletion_timestamp: Optional[datetime] = None

    bootstrap_secret: Optional[ObjectReference] = None
    installation_secret: Optional[ObjectReference] = None
    uninstallation_secret: Optional[ObjectReference] = None

    machine_ref: Optional[ObjectReference] = None
    conditions: List[Condition] = Field(default_factory=list)

    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)

    # -------------------------------------------------------------------------
    # Manifest conversion
    # -------------------------------------------------------------------------

    @classmethod
    def from_manifest(cls, obj: Dict[str, Any]) -> "HostRecord":
        meta = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        status = obj.get("status") or {}

        def _ref(value):
            return ObjectReference.model_validate(value) if value else None

        return cls(
            name=meta["name"],
            namespace=meta.get("namespace") or "default",
            labels=dict(meta.get("labels") or {}),
            annotations=dict(meta.get("annotations") or {}),
            finalizers=list(meta.get("finalizers") or []),
            resource_version=meta.get("resourceVersion"),
            uid=meta.get("uid"),
            deletion_timestamp=meta.get("deletionTimestamp"),
            bootstrap_secret=_ref(spec.get("bootstrapSecret")),
            installation_secret=_ref(spec.get("installationSecret")),
            uninstallation_secret=_ref(spec.get("uninstallationSecret")),
            machine_ref=_ref(status.get("machineRef")),
            conditions=[Condition.model_validate(c) for c in status.get("conditions") or []],
            raw=obj,
        )

    def to_manifest(self) -> Dict[str, Any]:
        obj = dict(self.raw)
        obj["apiVersion"] = f"{INFRA_GROUP}/{INFRA_VERSION}"
        obj["kind"] = HOST_KIND

        meta = dict(obj.get("metadata") or {})
        meta["name"] = self.name
        meta["namespace"] = self.namespace
        meta["labels"] = dict(self.labels)
        meta["annotations"] = dict(self.annotations)
        meta["finalizers"] = list(self.finalizers)
        if self.resource_version:
            meta["resourceVersion"] = self.resource_version
        obj["metadata"] = meta

        spec = dict(obj.get("spec") or {})
        for key, ref in (
            ("bootstrapSecret", self.bootstrap_secret),
            ("installationSecret", self.installation_secret),
            ("uninstallationSecret", self.uninstallation_secret),
        ):
            if ref is None:
                spec.pop(key, None)
            else:
                spec[key] = ref.to_dict()
        obj["spec"] = spec

        status = dict(obj.get("status") or {})
        if self.machine_ref is None:
            status.pop("machineRef", None)
        else:
            status["machineRef"] = self.machine_ref.to_dict()
        status["conditions"] = [c.to_dict() for c in self.conditions]
        obj["status"] = status

        return obj

    # -------------------------------------------------------------------------
    # Convenience
    # -------------------------------------------------------------------------

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def cleanup_requested(self) -> bool:
        return HOST_CLEANUP_ANNOTATION in self.annotations

    @property
    def being_deleted(self) -> bool:
        return self.deletion_timestamp is not None

    def reference(self) -> ObjectReference:
        return ObjectReference(
            kind=HOST_KIND,
            name=self.name,
            namespace=self.namespace,
            api_version=f"{INFRA_GROUP}/{INFRA_VERSION}",
            uid=self.uid,
        )
