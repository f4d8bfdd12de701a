# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/cloudinit/file_writer.py

from __future__ import annotations

import base64
import gzip
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from ..errors import ScriptExecutionError
from .models import WriteFile

log = logging.getLogger("byohost")


def decode_content(content: str, encoding: str) -> bytes:
    enc = (encoding or "").strip().lower()
    try:
        if enc in ("", "text/plain"):
            return content.encode()
        if enc in ("b64", "base64"):
            return base64.b64decode(content)
        if enc in ("gz+b64", "gzip+b64", "gz+base64", "gzip+base64"):
            return gzip.decompress(base64.b64decode(content))
    except (ValueError, OSError) as exc:
        raise ScriptExecutionError(f"cannot decode {enc} content: {exc}") from exc
    raise ScriptExecutionError(f"unsupported file encoding {encoding!r}")


@dataclass
class FileWriter:
    """Writes files on the local host."""

    dry_run: bool = False

    def mkdir(self, directory: str | Path) -> None:
        if self.dry_run:
            log.debug(f"[files] dry-run: mkdir -p {directory}")
            return
        Path(directory).mkdir(parents=True, exist_ok=True)

    def write(self, path: str | Path, content: bytes, mode: int = 0o644, *, append: bool = False) -> None:
        p = Path(path)
        log.debug(f"[files] {'append' if append else 'write'} {p} ({len(content)} bytes, mode {oct(mode)})")
        if self.dry_run:
            return

        self.mkdir(p.parent)
        with open(p, "ab" if append else "wb") as f:
            f.write(content)
        os.chmod(p, mode)

    def chown(self, path: str | Path, owner: str) -> None:
        user, _, group = owner.partition(":")
        if self.dry_run:
            return
        try:
            shutil.chown(path, user=user or None, group=group or None)
        except (LookupError, PermissionError) as exc:
            raise ScriptExecutionError(f"chown {owner} {path}: {exc}") from exc

    def write_file(self, spec: WriteFile, content: str | None = None) -> None:
        """Write one ``write_files`` entry, optionally with already-rendered content."""
        data = decode_content(spec.content if content is None else content, spec.encoding)
        self.write(spec.path, data, spec.mode, append=spec.append)
        if spec.owner:
            self.chown(spec.path, spec.owner)

    def remove(self, path: str | Path) -> bool:
        p = Path(path)
        if not p.exists():
            return False
        log.debug(f"[files] rm {p}")
        if not self.dry_run:
            p.unlink()
        return True
