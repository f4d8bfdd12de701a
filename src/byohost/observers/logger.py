# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
import logging
from .events import HostEvent


class LoggerObserver:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: HostEvent) -> None:
        level = logging.WARNING if event.event_type == "Warning" else logging.INFO
        self.logger.log(level, f"[EVENT] {event.namespace}/{event.name} {event.reason}: {event.message}")
