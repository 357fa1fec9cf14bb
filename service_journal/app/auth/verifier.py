"""
Firebase ID token verification for the journal gateway.

Tokens are RS256 JWTs signed with Google's rotating securetoken keys. The
published key set is fetched lazily on first use and cached; a failed fetch
is surfaced as an authentication failure and retried on the next request.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import httpx
from fastapi import Request
from jose import jwt
from jose.exceptions import JOSEError

from shared.errors import AuthenticationError
from shared.logging import get_logger, set_user_context
from shared.metrics import MetricsCollector

ISSUER_PREFIX = "https://securetoken.google.com/"


@dataclass(frozen=True)
class Identity:
    """Verified caller identity; ``uid`` scopes every store query."""

    uid: str
    claims: Dict[str, Any]


def extract_bearer_token(request: Request) -> Optional[str]:
    """Return the bearer token from the Authorization header, if any."""
    authorization = request.headers.get("Authorization") or ""
    if not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens against the provider's signing keys."""

    def __init__(
        self,
        project_id: Optional[str],
        jwks_url: str,
        *,
        refresh_interval: int = 3600,
        forced_refresh_cooldown: float = 60.0,
        http_timeout: float = 5.0,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.project_id = project_id
        self.jwks_url = jwks_url
        self.refresh_interval = refresh_interval
        self.forced_refresh_cooldown = forced_refresh_cooldown
        self.metrics = metrics
        self.logger = get_logger("journal.auth.verifier")

        self._keys: Optional[Iterable[Dict[str, Any]]] = None
        self._last_refresh: float = 0.0
        self._last_forced_refresh: float = 0.0
        self._lock = asyncio.Lock()
        self._http_timeout = http_timeout
        self._client = http_client

    @property
    def configured(self) -> bool:
        return bool(self.project_id)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def verify(self, request: Request) -> Identity:
        """Resolve the caller identity or raise AuthenticationError.

        Every failure collapses to the same error; the reason is only logged.
        """
        token = extract_bearer_token(request)
        if token is None:
            self._record("missing")
            raise AuthenticationError()

        try:
            claims = await self._validate_token(token)
        except AuthenticationError as exc:
            self.logger.warning("Token verification failed", reason=exc.message, **exc.details)
            self._record("invalid")
            raise AuthenticationError() from None
        except (JOSEError, httpx.HTTPError, ValueError) as exc:
            self.logger.warning("Token verification failed", reason=type(exc).__name__, error=str(exc))
            self._record("invalid")
            raise AuthenticationError() from None

        self._record("valid")
        identity = Identity(uid=claims["sub"], claims=claims)
        set_user_context(identity.uid)
        return identity

    async def _validate_token(self, token: str) -> Dict[str, Any]:
        """Validate the JWT and return its claims."""
        if not self.project_id:
            raise AuthenticationError("Identity provider project id is not configured")

        header = jwt.get_unverified_header(token)
        kid = header.get("kid")
        if not isinstance(kid, str):
            raise AuthenticationError("JWT header missing key id (kid)")

        key_data = await self._get_key(kid)
        if not key_data:
            raise AuthenticationError("Signing key not found for token", details={"kid": kid})

        claims = jwt.decode(
            token,
            key_data,
            algorithms=["RS256"],
            audience=self.project_id,
            issuer=f"{ISSUER_PREFIX}{self.project_id}",
        )

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthenticationError("JWT missing subject claim")
        return claims

    async def _get_key(self, kid: str) -> Optional[Dict[str, Any]]:
        """Return the signing key matching ``kid``."""
        await self._refresh_keys(force=False)
        for key in self._keys or []:
            if key.get("kid") == kid:
                return key

        # Keys rotate; refetch eagerly, at most once per cooldown.
        if self._in_forced_cooldown():
            return None
        await self._refresh_keys(force=True)
        for key in self._keys or []:
            if key.get("kid") == kid:
                return key
        return None

    def _in_forced_cooldown(self) -> bool:
        return (time.time() - self._last_forced_refresh) < self.forced_refresh_cooldown

    def _is_fresh(self) -> bool:
        return self._keys is not None and (time.time() - self._last_refresh) < self.refresh_interval

    async def _refresh_keys(self, *, force: bool) -> None:
        """Refresh the key set if the cache is stale.

        Concurrent callers wait on the same lock and reuse whatever the
        first one fetched.
        """
        if not force and self._is_fresh():
            return

        async with self._lock:
            if not force and self._is_fresh():
                return
            if force:
                if self._in_forced_cooldown():
                    return
                self._last_forced_refresh = time.time()

            if self._client is None:
                self._client = httpx.AsyncClient(timeout=self._http_timeout)

            response = await self._client.get(self.jwks_url)
            response.raise_for_status()
            payload = response.json()
            keys = payload.get("keys") if isinstance(payload, dict) else None
            if not isinstance(keys, list):
                raise AuthenticationError("JWKS response missing 'keys' array")

            self._keys = keys
            self._last_refresh = time.time()
            self.logger.info("Signing keys refreshed", key_count=len(keys))

    def _record(self, status: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("token_verifications_total", status=status)
