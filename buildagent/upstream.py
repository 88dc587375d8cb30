from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncGenerator

import httpx

from .config import Settings

logger = logging.getLogger(__name__)


class UpstreamError(RuntimeError):
    pass


class UpstreamClient:
    """HTTP client wrapper for an OpenAI-compatible /chat/completions API."""

    def __init__(
        self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self._settings = settings
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "UpstreamClient":
        return cls(settings)

    @property
    def _url(self) -> str:
        return f"{self._settings.upstream_base_url}{self._settings.upstream_path}"

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self._settings.request_timeout,
            transport=self._transport,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._settings.upstream_api_key:
            headers["Authorization"] = f"Bearer {self._settings.upstream_api_key}"
        return headers

    def _payload(self, prompt: str, stream: bool) -> dict[str, Any]:
        return {
            "model": self._settings.upstream_model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": stream,
            "temperature": self._settings.temperature,
        }

    def _should_retry(self, status_code: int | None) -> bool:
        return status_code in {502, 503, 504}

    async def _backoff(self, attempt: int, reason: str) -> None:
        delay = self._settings.upstream_retry_backoff * (2**attempt)
        logger.warning("upstream %s; retrying in %.2fs", reason, delay)
        await asyncio.sleep(delay)

    async def complete(self, prompt: str) -> str:
        """Send a non-streaming completion request and return content text."""
        retries = self._settings.upstream_max_retries
        payload = self._payload(prompt, stream=False)
        for attempt in range(retries + 1):
            try:
                async with self._client() as client:
                    resp = await client.post(self._url, headers=self._headers(), json=payload)
                if resp.status_code >= 400:
                    if self._should_retry(resp.status_code) and attempt < retries:
                        await self._backoff(attempt, f"returned {resp.status_code}")
                        continue
                    raise UpstreamError(
                        f"Upstream error {resp.status_code}: {resp.text}"
                    )
                data = resp.json()
                break
            except httpx.RequestError as exc:
                if attempt < retries:
                    await self._backoff(attempt, f"request failed ({exc!r})")
                    continue
                raise UpstreamError("Upstream request failed") from exc
            except json.JSONDecodeError as exc:
                raise UpstreamError("Upstream returned invalid JSON") from exc

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("Unexpected upstream response format") from exc

    async def stream_text(self, prompt: str) -> AsyncGenerator[str, None]:
        """Stream a completion and yield its content deltas as they arrive."""
        retries = self._settings.upstream_max_retries
        payload = self._payload(prompt, stream=True)
        yielded = False

        for attempt in range(retries + 1):
            try:
                async with self._client() as client:
                    async with client.stream(
                        "POST", self._url, headers=self._headers(), json=payload
                    ) as resp:
                        if resp.status_code >= 400:
                            text = await resp.aread()
                            if self._should_retry(resp.status_code) and attempt < retries:
                                await self._backoff(attempt, f"returned {resp.status_code}")
                                continue
                            raise UpstreamError(
                                f"Upstream error {resp.status_code}: {text.decode()}"
                            )

                        async for line in resp.aiter_lines():
                            if not line.startswith("data:"):
                                continue
                            data = line[len("data:") :].strip()
                            if data == "[DONE]":
                                return
                            try:
                                chunk = json.loads(data)
                            except json.JSONDecodeError:
                                logger.debug("skipping undecodable stream line: %r", data)
                                continue

                            choices = chunk.get("choices") or [{}]
                            content = (choices[0].get("delta") or {}).get("content")
                            if content:
                                yielded = True
                                yield content
                        return
            except httpx.RequestError as exc:
                if not yielded and attempt < retries:
                    await self._backoff(attempt, f"stream failed ({exc!r})")
                    continue
                raise UpstreamError("Upstream stream failed") from exc

    async def ping(self) -> bool:
        """Check upstream reachability with a simple GET."""
        url = f"{self._settings.upstream_base_url}/"
        try:
            async with self._client(timeout=10.0) as client:
                resp = await client.get(url)
            return resp.status_code < 500
        except httpx.HTTPError as exc:
            logger.warning("upstream ping failed: %r", exc)
            return False
