"""
HTTP routes of the journal gateway.

Both deployment shapes (the standalone server and the per-function apps)
register their routes through these helpers, so they share one
orchestrator and cannot drift apart.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .domain.orchestrator import GatewayResponse, JournalGateway

COMPLETION_PATH = "/api/ai-journal"
ENTRIES_PATH = "/api/journal-entries"
ENTRY_ITEM_PATH = "/api/journal-entries/{entry_id}"


async def read_json_body(request: Request) -> Any:
    """Parsed JSON body, or None when it is missing or malformed."""
    try:
        return await request.json()
    except ValueError:
        return None


def to_json_response(result: GatewayResponse) -> JSONResponse:
    return JSONResponse(content=result.body, headers=result.rate_limit.headers())


def register_completion_routes(app: FastAPI, gateway: JournalGateway) -> None:
    @app.post(COMPLETION_PATH)
    async def create_reflection(request: Request):
        """Reflect on a journal entry and store it."""
        body = await read_json_body(request)
        return to_json_response(await gateway.reflect(request, body))


def register_collection_routes(app: FastAPI, gateway: JournalGateway) -> None:
    @app.get(ENTRIES_PATH)
    async def list_entries(request: Request, limit: Optional[str] = None):
        """List the caller's recent entries, newest first."""
        return to_json_response(await gateway.list_entries(request, limit))


def register_item_routes(app: FastAPI, gateway: JournalGateway) -> None:
    @app.patch(ENTRY_ITEM_PATH)
    async def update_entry(entry_id: str, request: Request):
        """Edit the text of one of the caller's entries."""
        body = await read_json_body(request)
        return to_json_response(await gateway.update_entry(request, entry_id, body))

    @app.delete(ENTRY_ITEM_PATH)
    async def delete_entry(entry_id: str, request: Request):
        """Delete one of the caller's entries."""
        return to_json_response(await gateway.delete_entry(request, entry_id))


def register_all_routes(app: FastAPI, gateway: JournalGateway) -> None:
    register_completion_routes(app, gateway)
    register_collection_routes(app, gateway)
    register_item_routes(app, gateway)
