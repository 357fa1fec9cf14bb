"""
Upstream chat-completion client (OpenRouter) for journal reflections.
"""

import asyncio
import time
from typing import Any, Dict, Optional

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .parsing import Reflection, parse_reflection
from .prompts import build_messages

TEMPERATURE = 0.7
MAX_TOKENS = 400


def extract_content(payload: Any) -> str:
    """Return ``choices[0].message.content``, or "" when it is absent or not text."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


class CompletionClient:
    """Single-shot client for the reflection oracle. No retries."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        url: str,
        *,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.url = url
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("journal.completion_client")
        self._client = http_client
        self._lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def build_payload(self, entry: str, tone: Optional[str] = None) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": build_messages(entry, tone),
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }

    async def reflect(self, entry: str, tone: Optional[str] = None) -> Reflection:
        """Ask the oracle for a reflection on ``entry`` and parse its answer."""
        client = await self._get_client()
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key or ''}",
        }

        start_time = time.time()
        try:
            response = await client.post(self.url, json=self.build_payload(entry, tone), headers=headers)
        except httpx.HTTPError as e:
            self._record("network_error", start_time)
            self.logger.error("Upstream completion request failed", error=str(e), error_type=type(e).__name__)
            raise UpstreamError(message="Upstream AI unavailable") from e

        if not response.is_success:
            self._record("http_error", start_time)
            self.logger.error(
                "Upstream completion returned error status",
                status_code=response.status_code,
                model=self.model,
            )
            raise UpstreamError(upstream_status=response.status_code, body=response.text)

        try:
            payload = response.json()
        except ValueError:
            self.logger.warning("Upstream completion body is not JSON", status_code=response.status_code)
            payload = None

        text = extract_content(payload)
        if not text:
            self.logger.warning("Upstream completion carried no content", model=self.model)

        self._record("success", start_time)
        reflection = parse_reflection(text)
        self.logger.info(
            "Reflection generated",
            model=self.model,
            content_length=len(reflection.content),
            question_count=len(reflection.questions),
        )
        return reflection

    def _record(self, outcome: str, start_time: float) -> None:
        if self.metrics is None:
            return
        self.metrics.increment_counter("completion_requests_total", outcome=outcome)
        histogram = self.metrics.get_metric("completion_duration_seconds")
        if histogram is not None:
            histogram.observe(time.time() - start_time)
