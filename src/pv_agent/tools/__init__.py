"""
Tool invocation surface: one typed tool per pipeline capability.
"""

from .requests import TOOL_NAMES, TOOL_REQUEST_ADAPTER
from .server import ToolServer

__all__ = ["TOOL_NAMES", "TOOL_REQUEST_ADAPTER", "ToolServer"]
