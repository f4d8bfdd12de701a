# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/workflow/local.py

from __future__ import annotations

import logging

import typer

from ..execution.runner import CommandRunner

log = logging.getLogger("byohost")

DEFAULT_PACKAGE = "pf9-byohost-agent"


def confirm(prompt: str) -> bool:
    """Ask the operator a yes/no question on the terminal."""
    return typer.confirm(prompt, default=False)


class PackagePurger:
    """Removes the agent package and its configuration from this machine."""

    def __init__(self, runner: CommandRunner, package_name: str = DEFAULT_PACKAGE):
        self.runner = runner
        self.package_name = package_name

    def __call__(self) -> None:
        log.info(f"[purge] dpkg --purge {self.package_name}")
        self.runner.run_command(["dpkg", "--purge", self.package_name])
