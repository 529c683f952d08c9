"""
Error taxonomy shared by every provider pipeline.

Each tool invocation can fail in exactly one of four ways, and the tool
boundary (toolbridge.tools.dispatch) turns each of them into a single text
block instead of letting it escape as an MCP fault:

    ConfigurationError  - a required credential is missing (no network call made)
    ValidationError     - the caller's arguments failed the tool schema
    ProviderError       - the provider answered with an error, or the transport failed
    EmptyResultError    - the call worked but nothing usable came back

AuthenticationError is a ProviderError raised when the provider rejects an
OAuth token, so credential failures stay distinguishable from data errors.
"""


class ToolError(Exception):
    """
    Base class for all failures that are reported back to the caller as text.

    Attributes:
        message: Human-readable description of the failure
        prefix: Label placed in front of the message in the tool response
    """

    prefix = "Error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_text(self) -> str:
        return f"{self.prefix}: {self.message}"


class ConfigurationError(ToolError):
    prefix = "Configuration error"


class ValidationError(ToolError):
    """Raised when tool arguments do not satisfy the tool's parameter schema."""

    prefix = "Invalid parameters"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ProviderError(ToolError):
    prefix = "Provider error"


class AuthenticationError(ProviderError):
    prefix = "Authentication error"


class EmptyResultError(ToolError):
    """
    The provider call succeeded but returned no usable record.

    Rendered verbatim (no prefix) so callers can tell "nothing matched"
    apart from an empty document produced by a bug.
    """

    prefix = ""

    def to_text(self) -> str:
        return self.message
