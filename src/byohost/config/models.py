# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/config/models.py

from __future__ import annotations

import socket
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

BYOH_HOME = Path.home() / ".byoh"
DEFAULT_KUBECONFIG = str(BYOH_HOME / "config")


def _hostname() -> str:
    return socket.gethostname().lower()


class AgentSettings(BaseModel):
    host_name: str = Field(default_factory=_hostname)
    namespace: str = "default"
    kubeconfig: str = DEFAULT_KUBECONFIG
    skip_installation: bool = False
    reset_command: str = "kubeadm reset --force"
    download_path: str = "/var/lib/byoh/bundles"
    sentinel_file: str = "/run/cluster-api/bootstrap-success.complete"

    resync_seconds: int = 60
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 300.0
    command_timeout_seconds: Optional[int] = None
    dry_run: bool = False


class WorkflowSettings(BaseModel):
    kubeconfig: str = DEFAULT_KUBECONFIG    # written at onboarding
    host_name: str = Field(default_factory=_hostname)
    machine_ref_timeout_seconds: float = 300
    poll_interval_seconds: float = 5.0
    package_name: str = "pf9-byohost-agent"


class ByohConfig(BaseModel):
    agent: AgentSettings = Field(default_factory=AgentSettings)
    workflow: WorkflowSettings = Field(default_factory=WorkflowSettings)
    log_dir: Optional[Path] = None
