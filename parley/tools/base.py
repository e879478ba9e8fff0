"""Tool declarations advertised to the model.

Tools run outside the conversation core. The core only needs to tell the
model which functions exist and to report the calls it asks for.
"""

from __future__ import annotations

from typing import Any, Dict, List, Protocol


class Tool(Protocol):
    """Interface implemented by all tools."""

    name: str
    description: str
    parameters: Dict[str, Any]


def function_declaration(tool: Tool) -> Dict[str, Any]:
    """Render a tool as a provider function declaration."""

    return {
        "name": tool.name,
        "description": tool.description,
        "parameters": tool.parameters or {"type": "object", "properties": {}},
    }


class ToolRegistry:
    """Simple in-memory registry of tool implementations."""

    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def function_declarations(self) -> List[Dict[str, Any]]:
        return [function_declaration(tool) for tool in self._tools.values()]

    def as_request_tools(self) -> List[Dict[str, Any]]:
        """Declarations wrapped the way the ``tools`` request field expects."""

        declarations = self.function_declarations()
        if not declarations:
            return []
        return [{"functionDeclarations": declarations}]
