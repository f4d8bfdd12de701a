# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/byohost/logging/log.py

from __future__ import annotations

import logging
from pathlib import Path
from datetime import datetime, timezone
import uuid

# the kubernetes client logs every request body at DEBUG
QUIET_LOGGERS = ("kubernetes", "urllib3")


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "byohost",
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path]:
    """
    Set up the ``byohost`` logger for one agent or byohctl run.

    Everything goes to a per-run file under ~/.byoh/logs; the console gets
    INFO, or DEBUG with --verbose. Returns the logger, the run id and the
    log file path.
    """
    run_id = str(uuid.uuid4())

    base_dir = Path(base_dir) if base_dir else Path.home() / ".byoh" / "logs"
    base_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    trace = logging.FileHandler(log_path)
    trace.setLevel(logging.DEBUG)
    trace.setFormatter(formatter)

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(formatter)

    logger.addHandler(trace)
    logger.addHandler(console)

    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.debug(f"run_id={run_id} log_file={log_path}")
    return logger, run_id, log_path
