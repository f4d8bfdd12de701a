# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/execution/runner.py

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from ..errors import CommandError

Cmd = Sequence[Union[str, "os.PathLike[str]"]]

SHELL = "/bin/bash"


@dataclass
class CommandRunner:
    """
    Runs commands on the local host.

    Every call is treated as non-idempotent: callers decide whether a command
    should run at all, the runner never skips or deduplicates.
    """

    logger: Optional[logging.Logger] = None
    dry_run: bool = False
    label: Optional[str] = None
    timeout: Optional[int] = None

    def _log(self, msg: str) -> None:
        (self.logger or logging.getLogger("byohost")).debug(msg)

    def run(
        self,
        cmd: Cmd,
        *,
        check: bool = True,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        stdin_text: str | None = None,
    ) -> subprocess.CompletedProcess:
        label = self.label or "cmd"
        argv = [str(a) for a in cmd]
        cmd_str = " ".join(argv)

        self._log(f"[{label}] $ {cmd_str}")

        if self.dry_run:
            self._log(f"[{label}] dry-run: skipped execution")
            return subprocess.CompletedProcess(args=argv, returncode=0, stdout="", stderr="")

        start = time.time()
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                cwd=cwd,
                env={**os.environ, **env} if env else None,
                input=stdin_text,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandError(argv, None, stderr=f"timed out after {self.timeout}s") from e
        except OSError as e:
            raise CommandError(argv, None, stderr=str(e)) from e

        duration = time.time() - start

        if result.stdout:
            self._log(f"[{label}][stdout]\n{result.stdout.rstrip()}")
        if result.stderr:
            self._log(f"[{label}][stderr]\n{result.stderr.rstrip()}")
        self._log(f"[{label}][exit {result.returncode}] ({duration:.2f}s)")

        if check and result.returncode != 0:
            raise CommandError(argv, result.returncode, result.stdout, result.stderr)

        return result

    def run_command(self, argv: Cmd) -> str:
        """Run ``argv`` and return its stdout. Raises CommandError on failure."""
        return self.run(argv).stdout

    def run_script(self, script: str) -> str:
        """Run a shell script body through bash."""
        return self.run_command([SHELL, "-c", script])
