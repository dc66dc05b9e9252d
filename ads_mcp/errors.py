"""Error kinds raised by the tool pipeline and the JSON-RPC codes they map to."""

from typing import Any, Dict, Optional

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
UNAUTHORIZED = -32001


class ConfigError(RuntimeError):
    """Raised at startup when required settings are missing."""


class AdsApiError(RuntimeError):
    """Raw failure from the Google Ads API (message is a JSON detail string)."""


class ToolError(Exception):
    """Base for every error a tool call can surface to the caller."""

    code = INTERNAL_ERROR
    kind = "internal"

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.data = data or {}

    def to_error_data(self) -> Dict[str, Any]:
        return {"kind": self.kind, **self.data}


class ArgumentError(ToolError):
    """Arguments failed validation; message names the offending field(s)."""

    kind = "validation"


class NotFoundError(ToolError):
    kind = "not_found"


class ExternalCallError(ToolError):
    kind = "external"


class InternalToolError(ToolError):
    kind = "internal"


class UnknownToolError(ToolError):
    code = METHOD_NOT_FOUND
    kind = "unknown_tool"
