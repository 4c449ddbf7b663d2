"""
Tool response shapes.

Handlers return a ToolResult; the server turns it into a CallToolResult: a single
text block, the structured JSON payload when present, and isError for failures.
"""

from dataclasses import dataclass, field
from typing import Any

from mcp.types import CallToolResult, TextContent

from .errors import FileContextError


@dataclass
class ToolResult:
    text: str
    structured: dict[str, Any] = field(default_factory=dict)
    is_error: bool = False

    @classmethod
    def from_error(cls, error: FileContextError) -> "ToolResult":
        return cls(
            text=f"Error: {error.message}",
            structured={"error": error.to_dict()},
            is_error=True,
        )

    @classmethod
    def internal_error(cls, error: Exception) -> "ToolResult":
        message = f"{type(error).__name__}: {error}"
        return cls(
            text=f"Error: {message}",
            structured={"error": {"reason": "internal_error", "message": message}},
            is_error=True,
        )

    def to_content(self) -> list[TextContent]:
        return [TextContent(type="text", text=self.text)]

    def to_mcp(self) -> CallToolResult:
        """Text content, the structured payload when there is one, and the error flag."""
        return CallToolResult(
            content=self.to_content(),
            structuredContent=self.structured or None,
            isError=self.is_error,
        )
