# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Response filtering for list methods.

Removes denied tools, prompts and resources from the arrays returned by
``tools/list``, ``prompts/list``, ``resources/list`` and
``resources/templates/list``. Only the entity array changes; the rest of
the response envelope (ids, cursors, metadata) is passed through.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, NamedTuple, Optional

from meshguard.governance.audit import GuardLog
from meshguard.governance.policy import EntityType, GuardPolicy

logger = logging.getLogger(__name__)


class ListMethod(NamedTuple):
    entity_type: EntityType
    result_key: str


LIST_METHODS: Dict[str, ListMethod] = {
    "tools/list": ListMethod(EntityType.TOOL, "tools"),
    "prompts/list": ListMethod(EntityType.PROMPT, "prompts"),
    "resources/list": ListMethod(EntityType.RESOURCE, "resources"),
    "resources/templates/list": ListMethod(EntityType.RESOURCE, "resourceTemplates"),
}


def is_list_method(method: str) -> bool:
    return method in LIST_METHODS


class ResponseFilter:
    """Applies a :class:`GuardPolicy` to list-method results."""

    def __init__(self, policy: GuardPolicy, audit_log: Optional[GuardLog] = None):
        self.policy = policy
        self.audit_log = audit_log

    def apply(self, method: str, response: Any) -> Any:
        """
        Filter ``response`` in place if ``method`` is a list method.

        Entries without a string ``name`` cannot be matched against the
        policy and are dropped. A response that does not have the expected
        ``result.<key>`` array is returned unchanged.

        Returns:
            The same response object.
        """
        spec = LIST_METHODS.get(method)
        if spec is None or not isinstance(response, dict):
            return response
        result = response.get("result")
        if not isinstance(result, dict):
            return response
        entries = result.get(spec.result_key)
        if not isinstance(entries, list):
            return response

        kept = []
        for entry in entries:
            name = entry.get("name") if isinstance(entry, dict) else None
            if not isinstance(name, str):
                self._record(f"Dropped {spec.entity_type.value} entry without a name")
                continue
            if self.policy.is_allowed(spec.entity_type, name):
                kept.append(entry)
            else:
                self._record(f"Filtered {spec.entity_type.value}: {name}")

        result[spec.result_key] = kept
        return response

    def _record(self, message: str) -> None:
        logger.debug(message)
        if self.audit_log is not None:
            self.audit_log.log(message)
