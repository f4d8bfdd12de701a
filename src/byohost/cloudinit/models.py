# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/cloudinit/models.py

from __future__ import annotations

from typing import List, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class WriteFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str
    content: str = ""
    encoding: str = ""              # "", "b64", "base64", "gzip+b64", "gzip+base64"
    owner: str = ""                 # user[:group]
    permissions: str = "0644"       # octal string
    append: bool = False

    @field_validator("permissions", mode="before")
    @classmethod
    def _perm_as_str(cls, v):
        # YAML turns an unquoted 0644 into the int 420
        if isinstance(v, int):
            return oct(v)
        return v

    @property
    def mode(self) -> int:
        return int(self.permissions, 8)


class BootstrapDocument(BaseModel):
    """
    The small cloud-init subset carried by a bootstrap secret: files to write
    followed by commands to run.
    """

    model_config = ConfigDict(extra="ignore")

    write_files: List[WriteFile] = Field(default_factory=list)
    runcmd: List[Union[str, List[str]]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("runcmd", "runCmd"),
    )
