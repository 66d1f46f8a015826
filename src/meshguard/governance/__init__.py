# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Governance

Allow/deny policy for exposed entities and the append-only guard log.
"""

from .policy import EntityType, GuardPolicy, glob_match
from .audit import GuardLog, GuardLogEntry, LOG_FILE_NAME

__all__ = [
    "EntityType",
    "GuardPolicy",
    "glob_match",
    "GuardLog",
    "GuardLogEntry",
    "LOG_FILE_NAME",
]
