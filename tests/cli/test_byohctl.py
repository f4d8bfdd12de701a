from pathlib import Path

from typer.testing import CliRunner

from byohost import __version__
from byohost.cli.app import app

runner = CliRunner()


def test_version_prints_package_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_detach_without_kubeconfig_exits_1(tmp_path: Path):
    cfg = tmp_path / "byoh.yaml"
    cfg.write_text(
        f"log_dir: {tmp_path / 'logs'}\n"
        "workflow:\n"
        f"  kubeconfig: {tmp_path / 'missing'}\n"
        "  host_name: host-1\n"
    )

    result = runner.invoke(app, ["detach", "--config", str(cfg)])

    assert result.exit_code == 1
    assert "Please onboard the host first" in result.output
