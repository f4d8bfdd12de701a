# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/observers/dispatcher.py
from __future__ import annotations

import logging
from typing import List, Optional

from ..api.models import HostRecord
from .events import HostEvent
from .interface import Observer

log = logging.getLogger("byohost")


class EventBus:
    def __init__(self, observers: Optional[List[Observer]] = None):
        self._observers = list(observers or [])

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def emit(self, event: HostEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception as exc:
                # observers must not break a reconcile
                log.warning(f"observer {ob.__class__.__name__} dropped event {event.reason}: {exc}")

    def record(self, host: HostRecord, event_type: str, reason: str, message: str) -> HostEvent:
        event = HostEvent(
            name=host.name,
            namespace=host.namespace,
            uid=host.uid,
            event_type=event_type,
            reason=reason,
            message=message,
        )
        self.emit(event)
        return event
