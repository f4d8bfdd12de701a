# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/store/errors.py

from ..errors import ByohError


class StoreError(ByohError):
    """Base class for object store failures."""


class NotFoundError(StoreError):
    """The requested object does not exist."""


class ConflictError(StoreError):
    """Write rejected because the object changed since it was read."""
