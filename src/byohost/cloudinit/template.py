# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/cloudinit/template.py

from __future__ import annotations

from typing import Any, Dict, Optional

from jinja2 import Environment, StrictUndefined, TemplateError

from ..errors import ScriptExecutionError


class TemplateParser:
    """
    Expands ``{{ name }}`` placeholders in scripts and bootstrap files.

    Comments use ``{## ##}`` so bash's ``${#var}`` passes through untouched.
    """

    def __init__(self, defaults: Optional[Dict[str, Any]] = None):
        self.defaults = dict(defaults or {})
        self.env = Environment(
            autoescape=False,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
            comment_start_string="{##",
            comment_end_string="##}",
        )

    def parse(self, text: str, context: Optional[Dict[str, Any]] = None) -> str:
        values = {**self.defaults, **(context or {})}
        try:
            return self.env.from_string(text).render(**values)
        except TemplateError as exc:
            raise ScriptExecutionError(f"template expansion failed: {exc}") from exc
