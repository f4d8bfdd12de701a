# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/observers/events.py

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


def _ts() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class HostEvent:
    """One append-only event about a Host Record."""

    name: str            # host record name
    namespace: str
    event_type: str      # "Normal" | "Warning"
    reason: str
    message: str
    uid: str | None = None
    ts: str = field(default_factory=_ts)

    def dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        return f"{self.event_type} {self.reason} {self.message}"
