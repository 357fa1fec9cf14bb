"""
Independently deployable apps, one per route group.

Each factory builds a small service exposing only its own routes, wired to
the same orchestrator as the standalone server. Run one with, e.g.::

    uvicorn service_journal.app.functions:create_completion_app --factory
"""

from typing import Optional

from fastapi import FastAPI

from shared.config import ServiceConfig

from .main import JournalService
from .routes import register_collection_routes, register_completion_routes, register_item_routes


def create_completion_app(config: Optional[ServiceConfig] = None) -> FastAPI:
    """POST /api/ai-journal only."""
    return JournalService("ai-journal", config, register_completion_routes).app


def create_entries_app(config: Optional[ServiceConfig] = None) -> FastAPI:
    """GET /api/journal-entries only."""
    return JournalService("journal-entries", config, register_collection_routes).app


def create_entry_item_app(config: Optional[ServiceConfig] = None) -> FastAPI:
    """PATCH and DELETE /api/journal-entries/{entry_id} only."""
    return JournalService("journal-entry-item", config, register_item_routes).app
