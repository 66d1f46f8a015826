# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Guard configuration.

Policies come from ``--allow``/``--deny`` flags, from a YAML policy file,
or both (flag patterns are appended to the file's lists):

    allow:
      tool: ["read_*", "list_*"]
      prompt: ["system_*"]
    deny:
      tool: ["delete_*"]
      resource: ["secret.*"]
    log_dir: ~/.meshguard/logs
"""

import os
from pathlib import Path
from typing import Iterable, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from meshguard.exceptions import ConfigurationError
from meshguard.governance.policy import EntityType, GuardPolicy

LOG_DIR_ENV = "MESHGUARD_LOG_DIR"
STATE_DIR_NAME = ".meshguard"


def default_log_dir() -> Path:
    """Directory holding ``guard.log``.

    ``$MESHGUARD_LOG_DIR`` if set, otherwise ``~/.meshguard/logs``.
    """
    override = os.getenv(LOG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    try:
        home = Path.home()
    except RuntimeError as e:
        raise ConfigurationError(f"cannot determine home directory for logs: {e}") from e
    return home / STATE_DIR_NAME / "logs"


PatternMap = dict[EntityType, list[str]]


def empty_pattern_map() -> PatternMap:
    return {entity_type: [] for entity_type in EntityType}


def parse_pattern_spec(spec: str, patterns: Optional[PatternMap] = None) -> PatternMap:
    """
    Parse one ``--allow``/``--deny`` value into ``patterns``.

    The value is a comma-separated list of ``type:pattern`` items, e.g.
    ``tools:read_*,prompts:system_*``. An item without a type, or with a
    type that is not a known entity type, is taken whole as a tool pattern.
    """
    if patterns is None:
        patterns = empty_pattern_map()
    for item in spec.split(","):
        item = item.strip()
        if not item:
            continue
        kind, sep, value = item.partition(":")
        entity_type = EntityType.parse(kind) if sep else None
        if entity_type is None:
            patterns.setdefault(EntityType.TOOL, []).append(item)
        else:
            patterns.setdefault(entity_type, []).append(value)
    return patterns


def parse_pattern_specs(specs: Iterable[str]) -> PatternMap:
    patterns = empty_pattern_map()
    for spec in specs:
        parse_pattern_spec(spec, patterns)
    return patterns


class GuardConfig(BaseModel):
    """Settings for one guard session."""

    allow: dict[EntityType, list[str]] = Field(default_factory=dict)
    deny: dict[EntityType, list[str]] = Field(default_factory=dict)
    log_dir: Optional[Path] = Field(None, description="Directory for guard.log")

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "GuardConfig":
        """Load configuration from YAML."""
        try:
            data = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid policy file: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("policy file must contain a mapping")

        for key in ("allow", "deny"):
            section = data.get(key) or {}
            if not isinstance(section, dict):
                raise ConfigurationError(f"'{key}' must map entity types to pattern lists")
            normalized: PatternMap = {}
            for kind, values in section.items():
                entity_type = EntityType.parse(str(kind))
                if entity_type is None:
                    raise ConfigurationError(f"unknown entity type in '{key}': {kind}")
                if isinstance(values, str):
                    values = [values]
                normalized.setdefault(entity_type, []).extend(str(v) for v in values or [])
            data[key] = normalized

        if data.get("log_dir"):
            data["log_dir"] = Path(str(data["log_dir"])).expanduser()

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"invalid policy file: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> "GuardConfig":
        try:
            content = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"cannot read policy file {path}: {e}") from e
        return cls.from_yaml(content)

    def with_patterns(self, allow: PatternMap, deny: PatternMap) -> "GuardConfig":
        """Return a copy with ``allow``/``deny`` appended to this config's lists."""
        merged_allow = {k: list(v) for k, v in self.allow.items()}
        merged_deny = {k: list(v) for k, v in self.deny.items()}
        for target, extra in ((merged_allow, allow), (merged_deny, deny)):
            for entity_type, values in extra.items():
                if values:
                    target.setdefault(EntityType(entity_type), []).extend(values)
        return self.model_copy(update={"allow": merged_allow, "deny": merged_deny})

    def policy(self) -> GuardPolicy:
        return GuardPolicy(allow=self.allow, deny=self.deny)

    def resolved_log_dir(self) -> Path:
        return self.log_dir if self.log_dir is not None else default_log_dir()
