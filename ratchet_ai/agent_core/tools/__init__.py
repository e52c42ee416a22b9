"""Tool protocol, registry and the built-in tool set."""

from .base import BaseTool, ContainerExecutor, Tool, ToolContext
from .builtin import register_builtin_tools
from .files import validate_path
from .gates import REQUEST_APPROVAL, REQUEST_HUMAN
from .registry import MCPToolAdapter, ToolRegistry, mcp_tool_name

__all__ = [
    "BaseTool",
    "ContainerExecutor",
    "MCPToolAdapter",
    "REQUEST_APPROVAL",
    "REQUEST_HUMAN",
    "Tool",
    "ToolContext",
    "ToolRegistry",
    "mcp_tool_name",
    "register_builtin_tools",
    "validate_path",
]
