"""
MeshGuard - Allow/deny filtering for stdio MCP servers

Wraps any MCP server command and controls which tools, prompts and
resources its client can discover or invoke.

Version: 0.3.0
"""

__version__ = "0.3.0"

# Policy & logging
from .governance import (
    EntityType,
    GuardPolicy,
    GuardLog,
    GuardLogEntry,
    glob_match,
)

# Configuration
from .config import GuardConfig, default_log_dir, parse_pattern_specs

# Proxy
from .proxy import (
    ChildProcess,
    GuardSession,
    RequestGate,
    ResponseFilter,
    run_guard,
)

# Exceptions
from .exceptions import (
    MeshGuardError,
    ConfigurationError,
    PolicyViolationError,
    ProtocolDecodeError,
    ChildUnavailableError,
)

__all__ = [
    # Version
    "__version__",

    # Policy & logging
    "EntityType",
    "GuardPolicy",
    "GuardLog",
    "GuardLogEntry",
    "glob_match",

    # Configuration
    "GuardConfig",
    "default_log_dir",
    "parse_pattern_specs",

    # Proxy
    "ChildProcess",
    "GuardSession",
    "RequestGate",
    "ResponseFilter",
    "run_guard",

    # Exceptions
    "MeshGuardError",
    "ConfigurationError",
    "PolicyViolationError",
    "ProtocolDecodeError",
    "ChildUnavailableError",
]
