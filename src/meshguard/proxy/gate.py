# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""Request-time checks for call/read/get requests."""

from __future__ import annotations

import logging
from typing import Optional

from meshguard.exceptions import PolicyViolationError
from meshguard.governance.audit import GuardLog
from meshguard.governance.policy import EntityType, GuardPolicy
from meshguard.proxy.protocol import PromptGet, Request, ResourceRead, ToolCall

logger = logging.getLogger(__name__)


class RequestGate:
    """Stops calls to filtered tools, reads of filtered resources and gets of
    filtered prompts before they reach the server."""

    def __init__(self, policy: GuardPolicy, audit_log: Optional[GuardLog] = None):
        self.policy = policy
        self.audit_log = audit_log

    def check(self, request: Request) -> None:
        """
        Raise if the request targets an entity the policy hides.

        Raises:
            PolicyViolationError: The target tool, resource or prompt is
                not allowed. The request must not be forwarded.
        """
        target = request.target
        if isinstance(target, ToolCall):
            self._require(EntityType.TOOL, target.name, "call to filtered tool")
        elif isinstance(target, ResourceRead):
            self._require(EntityType.RESOURCE, target.name, "read of filtered resource")
        elif isinstance(target, PromptGet):
            self._require(EntityType.PROMPT, target.name, "get of filtered prompt")

    def _require(self, entity_type: EntityType, name: str, what: str) -> None:
        if self.policy.is_allowed(entity_type, name):
            return
        logger.warning("BLOCKED: %s %s", what, name)
        if self.audit_log is not None:
            self.audit_log.log(f"Blocked {what}: {name}")
        raise PolicyViolationError(entity_type.value, name)
