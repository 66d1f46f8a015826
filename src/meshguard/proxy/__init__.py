# Copyright (c) MeshGuard Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Stdio guard proxy.

Wraps an MCP server process and filters what its client can see and call.
"""

from .child_process import ChildProcess
from .filters import LIST_METHODS, ResponseFilter, is_list_method
from .gate import RequestGate
from .protocol import (
    MessageReader,
    OpaqueParams,
    PromptGet,
    Request,
    ResourceRead,
    ToolCall,
    error_response,
    resource_name_from_uri,
)
from .session import EXIT_FAILURE, EXIT_OK, GuardSession, run_guard

__all__ = [
    "ChildProcess",
    "LIST_METHODS",
    "ResponseFilter",
    "is_list_method",
    "RequestGate",
    "MessageReader",
    "OpaqueParams",
    "PromptGet",
    "Request",
    "ResourceRead",
    "ToolCall",
    "error_response",
    "resource_name_from_uri",
    "EXIT_FAILURE",
    "EXIT_OK",
    "GuardSession",
    "run_guard",
]
