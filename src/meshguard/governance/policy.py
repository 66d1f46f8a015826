# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Guard Policy

Name-based allow/deny rules for the tools, prompts and resources exposed by
a wrapped MCP server. Evaluation is pure and deterministic: the same policy
and name always produce the same decision.
"""

import fnmatch
import re
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, Field, field_validator


class EntityType(str, Enum):
    """Kinds of entity a server exposes by name."""

    TOOL = "tool"
    PROMPT = "prompt"
    RESOURCE = "resource"

    @classmethod
    def parse(cls, value: Union[str, "EntityType"]) -> Optional["EntityType"]:
        """Normalize singular, plural and short spellings.

        Returns ``None`` for anything that is not a known entity type.
        """
        if isinstance(value, EntityType):
            return value
        return _ENTITY_ALIASES.get(value.strip().lower())


_ENTITY_ALIASES = {
    "tool": EntityType.TOOL,
    "tools": EntityType.TOOL,
    "prompt": EntityType.PROMPT,
    "prompts": EntityType.PROMPT,
    "resource": EntityType.RESOURCE,
    "resources": EntityType.RESOURCE,
    "res": EntityType.RESOURCE,
}


def _has_unterminated_class(pattern: str) -> bool:
    """True if a ``[`` opens a character class that never closes."""
    i, n = 0, len(pattern)
    while i < n:
        if pattern[i] == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            close = pattern.find("]", j)
            if close == -1:
                return True
            i = close + 1
        else:
            i += 1
    return False


def glob_match(pattern: str, name: str) -> bool:
    """Shell-glob match of ``name`` against ``pattern``.

    ``*`` matches any run of characters, ``?`` a single character and
    ``[...]`` a character class. Matching is case-sensitive. A malformed
    pattern never matches; it is not an error.
    """
    if _has_unterminated_class(pattern):
        return False
    try:
        return fnmatch.fnmatchcase(name, pattern)
    except re.error:
        return False


class GuardPolicy(BaseModel):
    """
    Allow/deny pattern lists per entity type.

    - No allow patterns for a type: everything of that type is allowed.
    - Allow patterns present: a name must match at least one of them.
    - Any matching deny pattern blocks the name, even if it was allowed.

    Policies are frozen once built and stay fixed for a whole session.
    """

    model_config = {"frozen": True}

    allow: Mapping[EntityType, tuple[str, ...]] = Field(default_factory=dict, validate_default=True)
    deny: Mapping[EntityType, tuple[str, ...]] = Field(default_factory=dict, validate_default=True)

    @field_validator("allow", "deny", mode="before")
    @classmethod
    def _normalize_patterns(cls, value: Optional[Mapping]) -> dict:
        patterns: dict[EntityType, tuple[str, ...]] = {}
        for key, values in (value or {}).items():
            entity_type = EntityType.parse(key)
            if entity_type is None:
                raise ValueError(f"unknown entity type: {key!r}")
            if isinstance(values, str):
                values = [values]
            merged = patterns.get(entity_type, ()) + tuple(values or ())
            patterns[entity_type] = merged
        return patterns

    @field_validator("allow", "deny")
    @classmethod
    def _freeze_patterns(cls, value: Mapping) -> Mapping:
        return MappingProxyType(dict(value))

    @classmethod
    def from_patterns(
        cls,
        allow: Optional[Mapping[str, Sequence[str]]] = None,
        deny: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> "GuardPolicy":
        """Build a policy from plain ``{"tool": [...], ...}`` mappings."""
        return cls(allow=dict(allow or {}), deny=dict(deny or {}))

    def allow_patterns(self, entity_type: Union[str, EntityType]) -> tuple[str, ...]:
        return self.allow.get(EntityType(entity_type), ())

    def deny_patterns(self, entity_type: Union[str, EntityType]) -> tuple[str, ...]:
        return self.deny.get(EntityType(entity_type), ())

    def is_allowed(self, entity_type: Union[str, EntityType], name: str) -> bool:
        """
        Decide whether an entity name is visible to the client.

        Args:
            entity_type: ``tool``, ``prompt`` or ``resource``
            name: Entity name (for resources, the bare name derived from the URI)

        Returns:
            ``True`` if the name passes the allow list and no deny pattern
            matches it.
        """
        allow = self.allow_patterns(entity_type)
        allowed = not allow or any(glob_match(p, name) for p in allow)
        if allowed and any(glob_match(p, name) for p in self.deny_patterns(entity_type)):
            allowed = False
        return allowed

    @property
    def is_empty(self) -> bool:
        return not any(self.allow.values()) and not any(self.deny.values())

    def describe(self) -> Iterator[str]:
        """Human-readable summary lines, one per non-empty pattern list."""
        for entity_type in EntityType:
            allow = self.allow_patterns(entity_type)
            if allow:
                yield f"Allowing {entity_type.value} matching: {', '.join(allow)}"
            deny = self.deny_patterns(entity_type)
            if deny:
                yield f"Denying {entity_type.value} matching: {', '.join(deny)}"
