"""Error kinds raised below the HTTP layer.

Routes translate these into status codes before streaming starts; inside a
streaming turn they are logged or handed back to the model instead.
"""


class ChatServiceError(Exception):
    """Base class for errors raised by the chat services."""


class NotFoundError(ChatServiceError):
    """Resource absent or not visible to the caller."""


class UnauthorizedError(ChatServiceError):
    """Resource exists but the caller does not own it."""


class ConflictError(ChatServiceError):
    """A uniqueness constraint on a name was violated."""


class UnknownTool(ChatServiceError):
    """Requested tool name is not in the active tool set."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' not found")
        self.name = name


class InvalidToolArguments(ChatServiceError):
    """Tool arguments failed validation against the tool's parameters."""

    def __init__(self, name: str, detail: str):
        super().__init__(f"Invalid arguments for tool '{name}': {detail}")
        self.name = name
        self.detail = detail


class UpstreamGenerationFailure(ChatServiceError):
    """Model or search provider call failed."""


class InvalidInputError(ChatServiceError):
    """A required field is missing from the request."""
