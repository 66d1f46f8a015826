# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""Centralized exception hierarchy for MeshGuard.

All MeshGuard exceptions inherit from MeshGuardError, so the CLI can turn
any fatal session failure into a non-zero exit status in one place.
"""

from typing import Optional


class MeshGuardError(Exception):
    """Base exception for all MeshGuard errors."""


class ConfigurationError(MeshGuardError):
    """Invalid policy file, pattern flag, or log location."""


class PolicyViolationError(MeshGuardError):
    """A request targeted an entity filtered out by the allow/deny rules.

    The message deliberately reads "not found" so that the client cannot
    tell a filtered entity apart from one that does not exist.
    """

    def __init__(self, entity_type: str, name: str):
        self.entity_type = entity_type
        self.name = name
        super().__init__(f"{entity_type} not found: {name}")


class ProtocolDecodeError(MeshGuardError):
    """A message on the client or child stream could not be decoded."""

    def __init__(self, message: str, source: str = "client", raw: Optional[bytes] = None):
        self.source = source
        self.raw = raw
        super().__init__(message)


class ChildUnavailableError(MeshGuardError):
    """The wrapped server could not be started or went away mid-request."""


__all__ = [
    "MeshGuardError",
    "ConfigurationError",
    "PolicyViolationError",
    "ProtocolDecodeError",
    "ChildUnavailableError",
]
