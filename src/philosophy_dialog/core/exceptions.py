"""Custom exceptions for the dialog orchestrator.

All exceptions are namespaced under DialogError so a single except
clause can catch every orchestration failure, and none of them shadow
Python builtins.
"""

from typing import Any


class DialogError(Exception):
    """Base exception for all dialog-related errors."""

    def __init__(self, message: str, side: str | None = None) -> None:
        """Initialize dialog error.

        Args:
            message: Error description
            side: Participant side involved, if any
        """
        self.side = side
        super().__init__(message)


class DialogStateError(DialogError):
    """Raised when an orchestrator operation is invalid for its current phase."""

    def __init__(self, message: str, phase: str) -> None:
        """Initialize state error.

        Args:
            message: Error description
            phase: Lifecycle phase at the time of the call
        """
        self.phase = phase
        super().__init__(message)


class UnknownToolError(DialogError):
    """Raised when a model requests a tool that is not registered.

    Fatal for the current turn; the turn executor converts it into a
    placeholder message and a failure count.
    """

    def __init__(self, tool_name: str, side: str | None = None) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}", side)


class EmptyVendorOutputError(DialogError):
    """Raised when a vendor response carries no usable output at all."""

    def __init__(self, vendor: str, side: str | None = None) -> None:
        self.vendor = vendor
        super().__init__(f"Empty output from {vendor}", side)


class ProcessAbortedError(DialogError):
    """Raised by the abort_process tool to stop the run without postprocessing."""

    def __init__(self, side: str | None = None) -> None:
        super().__init__("Process aborted by abort_process tool", side)


class ConversationLogClosedError(DialogError):
    """Raised when a record is written after the conversation log was closed."""

    def __init__(self, path: Any) -> None:
        self.path = path
        super().__init__(f"Conversation log already closed: {path}")


class PostprocessingError(DialogError):
    """Raised when summary or graph extraction output is unusable.

    Caught by the orchestrator and recorded as POSTPROC_ERROR.
    """

    def __init__(self, message: str, stage: str) -> None:
        """Initialize postprocessing error.

        Args:
            message: Error description
            stage: Postprocessing stage that failed (summary, graph, ...)
        """
        self.stage = stage
        super().__init__(message)


class GraphStoreError(DialogError):
    """Raised when the Neo4j graph store cannot be reached or queried."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.cause = cause
        if cause:
            self.__cause__ = cause
        super().__init__(message)
