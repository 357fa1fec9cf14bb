"""
Adapters package for the journal gateway.

Wraps external stores behind owner-scoped operations and maps driver errors
onto shared errors.
"""

from .entry_store import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT, EntryStore, JournalEntry, clamp_limit

__all__ = [
    "DEFAULT_LIST_LIMIT",
    "MAX_LIST_LIMIT",
    "EntryStore",
    "JournalEntry",
    "clamp_limit",
]
