"""
Per-route request orchestration for the journal gateway.

Every route walks the same stages: verify the caller, validate the payload
(write paths), spend rate-limit budget, then execute against the completion
oracle or the entry store. A failed stage raises a shared error and later
stages never run. The one exception is persistence on the reflection route:
the reflection is returned even when storing it fails.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from fastapi import Request

from shared.errors import RateLimitError
from shared.logging import get_logger

from ..adapters.entry_store import JournalEntry, clamp_limit
from ..auth.verifier import Identity
from ..completion.parsing import Reflection
from ..ratelimit.fixed_window import RateLimitDecision
from .validation import validate_entry_update, validate_reflection_request


class CredentialVerifier(Protocol):
    async def verify(self, request: Request) -> Identity: ...


class RequestRateLimiter(Protocol):
    async def check_request(self, request: Request, action: str, uid: str) -> RateLimitDecision: ...


class ReflectionOracle(Protocol):
    async def reflect(self, entry: str, tone: Optional[str] = None) -> Reflection: ...


class JournalEntryStore(Protocol):
    async def insert(self, owner_id: str, text: str, ai_result: Optional[Dict[str, Any]] = None) -> str: ...

    async def list(self, owner_id: str, limit: int) -> List[JournalEntry]: ...

    async def update(self, owner_id: str, entry_id: str, text: str) -> None: ...

    async def delete(self, owner_id: str, entry_id: str) -> None: ...


@dataclass
class GatewayResponse:
    body: Dict[str, Any]
    rate_limit: RateLimitDecision


class JournalGateway:
    """Composes verifier, limiter, oracle and store into route handlers."""

    def __init__(
        self,
        verifier: CredentialVerifier,
        rate_limiter: RequestRateLimiter,
        store: JournalEntryStore,
        oracle: ReflectionOracle,
    ):
        self.verifier = verifier
        self.rate_limiter = rate_limiter
        self.store = store
        self.oracle = oracle
        self.logger = get_logger("journal.gateway")

    async def _enforce_rate_limit(self, request: Request, action: str, identity: Identity) -> RateLimitDecision:
        decision = await self.rate_limiter.check_request(request, action, identity.uid)
        if not decision.allowed:
            raise RateLimitError(retry_after=decision.retry_after, headers=decision.headers())
        return decision

    async def reflect(self, request: Request, raw_body: Any) -> GatewayResponse:
        """POST completion: reflect on an entry and store the result."""
        identity = await self.verifier.verify(request)
        payload = validate_reflection_request(raw_body)
        decision = await self._enforce_rate_limit(request, "ai", identity)

        reflection = await self.oracle.reflect(payload.entry, payload.tone)

        try:
            await self.store.insert(identity.uid, payload.entry, reflection.to_dict())
        except Exception as e:
            self.logger.warning("Entry insert failed; returning reflection anyway", error=str(e))

        return GatewayResponse(body=reflection.to_dict(), rate_limit=decision)

    async def list_entries(self, request: Request, limit: Any = None) -> GatewayResponse:
        """GET collection: the caller's newest entries."""
        identity = await self.verifier.verify(request)
        decision = await self._enforce_rate_limit(request, "list", identity)

        entries = await self.store.list(identity.uid, clamp_limit(limit))
        return GatewayResponse(
            body={"entries": [entry.to_dict() for entry in entries]},
            rate_limit=decision,
        )

    async def update_entry(self, request: Request, entry_id: str, raw_body: Any) -> GatewayResponse:
        """PATCH item: replace the text of one of the caller's entries."""
        identity = await self.verifier.verify(request)
        payload = validate_entry_update(raw_body)
        decision = await self._enforce_rate_limit(request, "edit", identity)

        await self.store.update(identity.uid, entry_id, payload.entry)
        return GatewayResponse(body={"ok": True}, rate_limit=decision)

    async def delete_entry(self, request: Request, entry_id: str) -> GatewayResponse:
        """DELETE item: remove one of the caller's entries."""
        identity = await self.verifier.verify(request)
        decision = await self._enforce_rate_limit(request, "delete", identity)

        await self.store.delete(identity.uid, entry_id)
        return GatewayResponse(body={"ok": True}, rate_limit=decision)
