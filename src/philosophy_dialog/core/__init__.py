"""Core module - Configuration, logging, constants and exceptions.

Exports:
    - Settings, get_settings: Pydantic Settings configuration
    - configure_logging, get_logger: Structured logging (structlog)
    - Exception classes: DialogError and its subclasses
"""

from philosophy_dialog.core.config import Settings, get_settings
from philosophy_dialog.core.exceptions import (
    ConversationLogClosedError,
    DialogError,
    DialogStateError,
    EmptyVendorOutputError,
    GraphStoreError,
    PostprocessingError,
    ProcessAbortedError,
    UnknownToolError,
)
from philosophy_dialog.core.logging import configure_logging, get_logger

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Logging
    "configure_logging",
    "get_logger",
    # Exceptions
    "ConversationLogClosedError",
    "DialogError",
    "DialogStateError",
    "EmptyVendorOutputError",
    "GraphStoreError",
    "PostprocessingError",
    "ProcessAbortedError",
    "UnknownToolError",
]
