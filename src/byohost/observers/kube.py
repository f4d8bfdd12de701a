# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/observers/kube.py

from __future__ import annotations

from datetime import datetime, timezone

from kubernetes import client

from ..api.constants import HOST_KIND, INFRA_GROUP, INFRA_VERSION
from .events import HostEvent


class KubeEventObserver:
    """Publishes host events as core/v1 Events involving the ByoHost."""

    def __init__(self, api_client: client.ApiClient, component: str = "byoh-agent", host: str | None = None):
        self.core = client.CoreV1Api(api_client)
        self.component = component
        self.host = host

    def notify(self, event: HostEvent) -> None:
        now = datetime.now(timezone.utc)
        body = client.CoreV1Event(
            metadata=client.V1ObjectMeta(generate_name=f"{event.name}.", namespace=event.namespace),
            involved_object=client.V1ObjectReference(
                api_version=f"{INFRA_GROUP}/{INFRA_VERSION}",
                kind=HOST_KIND,
                name=event.name,
                namespace=event.namespace,
                uid=event.uid,
            ),
            reason=event.reason,
            message=event.message,
            type=event.event_type,
            count=1,
            first_timestamp=now,
            last_timestamp=now,
            source=client.V1EventSource(component=self.component, host=self.host),
        )
        self.core.create_namespaced_event(event.namespace, body)
