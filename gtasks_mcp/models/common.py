from enum import Enum

from pydantic import BaseModel


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    VALIDATION = "validation"
    UPSTREAM = "upstream"
    AUTH_FLOW = "auth_flow"


class ToolResult(BaseModel):
    """Outcome of a tool handler, formatted for the caller only at the MCP boundary."""

    text: str
    is_error: bool = False
    kind: ErrorKind | None = None

    @classmethod
    def ok(cls, text: str) -> "ToolResult":
        return cls(text=text)

    @classmethod
    def failure(cls, kind: ErrorKind, text: str) -> "ToolResult":
        return cls(text=text, is_error=True, kind=kind)
