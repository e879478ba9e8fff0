"""Tool abstractions for parley."""

from .base import Tool, ToolRegistry, function_declaration

__all__ = ["Tool", "ToolRegistry", "function_declaration"]
