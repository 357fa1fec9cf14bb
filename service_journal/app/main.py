"""
Journal gateway service: standalone server exposing every route.
"""

from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.metrics import MetricsCollector

from .adapters.entry_store import EntryStore
from .auth.verifier import FirebaseTokenVerifier
from .completion.client import CompletionClient
from .domain.orchestrator import JournalGateway
from .ratelimit.fixed_window import FixedWindowRateLimiter, RateLimitMiddleware
from .routes import register_all_routes

SERVICE_NAME = "journal-gateway"


def build_gateway(config: ServiceConfig, metrics: Optional[MetricsCollector] = None) -> JournalGateway:
    """Wire the concrete collaborators described by ``config``.

    Nothing connects here; each collaborator opens its client lazily on
    first use.
    """
    verifier = FirebaseTokenVerifier(
        config.firebase_project_id,
        config.firebase_jwks_url,
        metrics=metrics,
    )
    rate_limiter = FixedWindowRateLimiter(
        config.rate_limit_redis_url,
        config.rate_limit_redis_token,
        metrics=metrics,
    )
    store = EntryStore(config.mongodb_uri, config.mongodb_db_name, metrics=metrics)
    oracle = CompletionClient(
        config.openrouter_api_key,
        config.openrouter_model,
        config.openrouter_url,
        timeout=config.openrouter_timeout_seconds,
        metrics=metrics,
    )
    return JournalGateway(
        verifier=verifier,
        rate_limiter=RateLimitMiddleware(rate_limiter),
        store=store,
        oracle=oracle,
    )


class JournalService(BaseService):
    """Gateway in front of the reflection oracle and the entry store."""

    def __init__(
        self,
        service_name: str = SERVICE_NAME,
        config: Optional[ServiceConfig] = None,
        register_routes: Callable[[FastAPI, JournalGateway], None] = register_all_routes,
    ):
        super().__init__(service_name, config)
        self.gateway = build_gateway(self.config, self.metrics)

        if not self.config.openrouter_api_key:
            self.logger.warning("OPENROUTER_API_KEY is not set; reflections will fail upstream")
        if not self.config.rate_limit_redis_url:
            self.logger.warning("Rate limit store not configured; rate limiting disabled")

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.close()

        register_routes(self.app, self.gateway)

        # Expose service instance via app state for introspection/testing
        self.app.state.journal_service = self

    async def close(self) -> None:
        for collaborator in (
            self.gateway.verifier,
            self.gateway.rate_limiter.rate_limiter,
            self.gateway.store,
            self.gateway.oracle,
        ):
            close = getattr(collaborator, "close", None)
            if close is not None:
                await close()

    def _check_dependencies(self) -> Dict[str, Any]:
        return {
            "store": "configured" if self.config.mongodb_uri else "missing",
            "rate_limit_store": "configured" if self.config.rate_limit_redis_url else "disabled",
            "identity_provider": "configured" if self.config.firebase_project_id else "missing",
            "service_account": "configured" if self.config.has_service_account else "missing",
            "completion_api_key": "configured" if self.config.openrouter_api_key else "missing",
        }


def create_app(config: Optional[ServiceConfig] = None) -> FastAPI:
    """Create FastAPI application."""
    service = JournalService(config=config)
    return service.app


if __name__ == "__main__":
    service = JournalService()
    service.run()
