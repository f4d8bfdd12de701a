# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/cloudinit/executor.py

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from ..errors import ScriptExecutionError
from ..execution.runner import CommandRunner
from .file_writer import FileWriter
from .models import BootstrapDocument
from .template import TemplateParser

log = logging.getLogger("byohost")


def parse_document(text: str) -> BootstrapDocument:
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ScriptExecutionError(f"bootstrap data is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ScriptExecutionError("bootstrap data must be a mapping")
    try:
        return BootstrapDocument.model_validate(data)
    except ValidationError as exc:
        raise ScriptExecutionError(f"invalid bootstrap data: {exc}") from exc


class ScriptExecutor:
    """
    Applies a bootstrap document: writes every file, then runs every command
    in order. Stops at the first failure.
    """

    def __init__(self, runner: CommandRunner, writer: FileWriter, parser: TemplateParser):
        self.runner = runner
        self.writer = writer
        self.parser = parser

    def execute(self, text: str, context: Optional[Dict[str, Any]] = None) -> BootstrapDocument:
        doc = parse_document(text)
        log.debug(f"[bootstrap] {len(doc.write_files)} file(s), {len(doc.runcmd)} command(s)")

        for f in doc.write_files:
            content = None
            if not f.encoding:
                content = self.parser.parse(f.content, context)
            self.writer.write_file(f, content)

        for cmd in doc.runcmd:
            if isinstance(cmd, str):
                self.runner.run_script(cmd)
            else:
                self.runner.run_command(cmd)

        return doc
