import logging
import textwrap
from pathlib import Path

import pytest

from byohost.config import loader
from byohost.config.loader import load_config
from byohost.logging.log import init_logging


@pytest.fixture(autouse=True)
def _no_user_config(monkeypatch, tmp_path: Path):
    monkeypatch.delenv("BYOH_CONFIG", raising=False)
    monkeypatch.setattr(loader, "DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")


def test_defaults_without_config_file():
    cfg = load_config()
    assert cfg.agent.reset_command == "kubeadm reset --force"
    assert cfg.agent.skip_installation is False
    assert cfg.workflow.machine_ref_timeout_seconds == 300
    assert cfg.workflow.package_name == "pf9-byohost-agent"
    assert cfg.agent.host_name


def test_file_is_merged_over_defaults_with_env_expansion(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("BYOH_NS", "tenant-a")
    f = tmp_path / "byoh.yaml"
    f.write_text(textwrap.dedent("""
        agent:
          host_name: node-7
          namespace: ${BYOH_NS}
          skip_installation: true
        workflow:
          poll_interval_seconds: 1
    """))

    cfg = load_config(f)

    assert cfg.agent.host_name == "node-7"
    assert cfg.agent.namespace == "tenant-a"
    assert cfg.agent.skip_installation is True
    assert cfg.agent.backoff_max_seconds == 300.0
    assert cfg.workflow.poll_interval_seconds == 1.0
    assert cfg.workflow.machine_ref_timeout_seconds == 300


def test_env_var_points_at_config(tmp_path: Path, monkeypatch):
    f = tmp_path / "other.yaml"
    f.write_text("workflow:\n  package_name: byoh-agent\n")
    monkeypatch.setenv("BYOH_CONFIG", str(f))

    assert load_config().workflow.package_name == "byoh-agent"


def test_missing_env_config_falls_back_to_defaults(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("BYOH_CONFIG", str(tmp_path / "gone.yaml"))
    assert load_config().agent.namespace == "default"


def test_empty_values_do_not_override_defaults(tmp_path: Path):
    f = tmp_path / "byoh.yaml"
    f.write_text("agent:\n  reset_command: ''\n")
    assert load_config(f).agent.reset_command == "kubeadm reset --force"


def test_init_logging_writes_run_file(tmp_path: Path):
    logger, run_id, log_path = init_logging(base_dir=tmp_path, name="byohost-test")
    logger.info("hello")
    for h in logger.handlers:
        h.flush()

    assert log_path.parent == tmp_path
    assert run_id in log_path.name
    assert "hello" in log_path.read_text()
    assert logger.propagate is False
    assert any(isinstance(h, logging.FileHandler) for h in logger.handlers)
