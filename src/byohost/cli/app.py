# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/cli/app.py
from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Optional

import typer
import yaml

from byohost import __version__
from byohost.agent.loop import AgentLoop
from byohost.agent.reconciler import HostReconciler
from byohost.cloudinit.file_writer import FileWriter
from byohost.cloudinit.template import TemplateParser
from byohost.config.loader import load_config
from byohost.config.models import ByohConfig
from byohost.errors import ByohError
from byohost.execution.runner import CommandRunner
from byohost.logging.log import init_logging
from byohost.observers.dispatcher import EventBus
from byohost.observers.kube import KubeEventObserver
from byohost.observers.logger import LoggerObserver
from byohost.store.kube import KubeStore
from byohost.workflow.host_operations import HostOperationWorkflow, OperationType
from byohost.workflow.local import PackagePurger, confirm


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Bring-your-own-host agent and host operations")

ConfigOpt = typer.Option(None, "--config", help="Path to byoh.yaml")
NamespaceOpt = typer.Option(None, "--namespace", "-n", help="Namespace of the host record")
VerboseOpt = typer.Option(False, "--verbose", "-v", help="Debug output on the console")


def _load(config: Optional[Path], verbose: bool):
    try:
        cfg = load_config(config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        typer.secho(f"Invalid configuration: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    logger, run_id, log_path = init_logging(base_dir=cfg.log_dir, verbose=verbose)
    return cfg, logger, log_path


# ------------------------------------------------------------------------------
# Agent
# ------------------------------------------------------------------------------

def build_agent(cfg: ByohConfig, logger, namespace: str) -> AgentLoop:
    settings = cfg.agent
    store = KubeStore.from_kubeconfig(settings.kubeconfig)

    bus = EventBus(observers=[
        LoggerObserver(logger),
        KubeEventObserver(store.api_client, host=settings.host_name),
    ])
    runner = CommandRunner(
        logger=logger,
        dry_run=settings.dry_run,
        label="agent",
        timeout=settings.command_timeout_seconds,
    )
    reconciler = HostReconciler(
        store,
        runner,
        FileWriter(dry_run=settings.dry_run),
        TemplateParser(),
        bus,
        skip_installation=settings.skip_installation,
        reset_command=settings.reset_command,
        download_path=settings.download_path,
        sentinel_file=settings.sentinel_file,
    )
    return AgentLoop(
        store,
        reconciler,
        settings.host_name,
        namespace,
        resync_seconds=settings.resync_seconds,
        backoff_base=settings.backoff_base_seconds,
        backoff_max=settings.backoff_max_seconds,
    )


@app.command()
def agent(
    config: Optional[Path] = ConfigOpt,
    namespace: Optional[str] = NamespaceOpt,
    skip_installation: bool = typer.Option(False, "--skip-installation", help="Bootstrap only, do not install components"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    verbose: bool = VerboseOpt,
):
    """Run the host agent until interrupted."""
    cfg, logger, log_path = _load(config, verbose)
    if skip_installation:
        cfg.agent.skip_installation = True
    if dry_run:
        cfg.agent.dry_run = True

    ns = namespace or cfg.agent.namespace
    typer.secho(f"byoh agent {__version__} for {ns}/{cfg.agent.host_name}", bold=True)
    typer.echo(f"  Log file : {log_path}")

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    try:
        build_agent(cfg, logger, ns).run(stop)
    except KeyboardInterrupt:
        stop.set()
    except ByohError as exc:
        typer.secho(f"Agent failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


# ------------------------------------------------------------------------------
# Host operations
# ------------------------------------------------------------------------------

def _perform(kind: OperationType, config: Optional[Path], namespace: Optional[str], verbose: bool) -> None:
    cfg, logger, log_path = _load(config, verbose)
    settings = cfg.workflow

    workflow = HostOperationWorkflow(
        lambda kubeconfig: KubeStore.from_kubeconfig(kubeconfig),
        kubeconfig=settings.kubeconfig,
        host_name=settings.host_name,
        confirm=confirm,
        purge=PackagePurger(CommandRunner(logger=logger, label="purge"), settings.package_name),
        timeout=settings.machine_ref_timeout_seconds,
        interval=settings.poll_interval_seconds,
    )

    try:
        workflow.perform(kind, namespace)
    except ByohError as exc:
        typer.secho(f"{kind.value} failed: {exc}", fg=typer.colors.RED, err=True)
        typer.echo(f"  See {log_path}", err=True)
        raise typer.Exit(code=1)

    typer.secho(f"{kind.value} completed", fg=typer.colors.GREEN)


@app.command()
def detach(
    config: Optional[Path] = ConfigOpt,
    namespace: Optional[str] = NamespaceOpt,
    verbose: bool = VerboseOpt,
):
    """Remove this host from its cluster and leave it free for reuse."""
    _perform(OperationType.DETACH, config, namespace, verbose)


@app.command()
def decommission(
    config: Optional[Path] = ConfigOpt,
    namespace: Optional[str] = NamespaceOpt,
    verbose: bool = VerboseOpt,
):
    """Detach this host, delete its record and purge the agent package."""
    _perform(OperationType.DECOMMISSION, config, namespace, verbose)


@app.command()
def version():
    """Print the version."""
    typer.echo(__version__)


if __name__ == "__main__":
    app()
