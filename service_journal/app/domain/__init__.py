"""
Domain utilities for the journal gateway.

Holds request validation and the orchestrator that sequences verification,
rate limiting and execution for every route.
"""

from .orchestrator import GatewayResponse, JournalGateway
from .validation import (
    MAX_ENTRY_LENGTH,
    EntryUpdateRequest,
    ReflectionRequest,
    validate_entry_update,
    validate_reflection_request,
)

__all__ = [
    "GatewayResponse",
    "JournalGateway",
    "MAX_ENTRY_LENGTH",
    "EntryUpdateRequest",
    "ReflectionRequest",
    "validate_entry_update",
    "validate_reflection_request",
]
