"""httpx-backed Transport: one HTTP call per send, no retries."""
from __future__ import annotations

import asyncio
import logging
from contextlib import ExitStack
from typing import Any, Sequence

import httpx

from feedback_client.application.ports.transport import RawResult
from feedback_client.config import Settings
from feedback_client.domain.entities.stored_file import StoredFile
from feedback_client.infrastructure.http.serializer import serialize_body

logger = logging.getLogger(__name__)


def build_headers(settings: Settings) -> dict[str, str]:
    return {
        "User-Agent": settings.user_agent,
        "Authorization": f"Bearer {settings.API_TOKEN}",
        "X-API-Version": str(settings.API_VERSION),
        "Accept": "application/json",
        "Accept-Encoding": "gzip",
    }


class HttpxTransport:
    """Implements application.ports.transport.Transport."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> HttpxTransport:
        client = httpx.AsyncClient(
            base_url=settings.API_BASE_URL,
            headers=build_headers(settings),
            timeout=httpx.Timeout(
                settings.HTTP_READ_TIMEOUT,
                connect=settings.HTTP_CONNECT_TIMEOUT,
            ),
            transport=transport,
        )
        return cls(client)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(
        self,
        endpoint: str,
        method: str,
        body: dict[str, Any] | None = None,
        attachments: Sequence[StoredFile] = (),
    ) -> RawResult:
        logger.debug("Performing %s request to %s", method, endpoint)
        with ExitStack() as stack:
            files = []
            try:
                # Open handles are streamed chunk by chunk by the multipart encoder.
                for attachment in attachments:
                    handle = await asyncio.to_thread(open, attachment.local_cache_path, "rb")
                    files.append(
                        (
                            "file",
                            (attachment.file_name, stack.enter_context(handle), attachment.mime_type),
                        )
                    )
            except OSError as exc:
                logger.error("Unable to open attachment for %s: %s", endpoint, exc)
                return RawResult(bad_payload=True)

            try:
                response = await self._request(method, endpoint, body, files)
            except httpx.RequestError as exc:
                logger.warning("%s %s failed: %s", method, endpoint, exc)
                return RawResult(transport_error=f"{type(exc).__name__}: {exc}")
            except OSError as exc:
                if files:
                    logger.error("Error streaming attachment to %s: %s", endpoint, exc)
                    return RawResult(bad_payload=True)
                logger.warning("%s %s failed: %s", method, endpoint, exc)
                return RawResult(transport_error=f"{type(exc).__name__}: {exc}")

        result = RawResult(
            status_code=response.status_code,
            headers=dict(response.headers),
            body_text=response.text,
        )
        if result.is_successful:
            logger.debug("HTTP %d from %s", response.status_code, endpoint)
        else:
            logger.warning(
                "HTTP %d from %s: %s", response.status_code, endpoint, result.body_text,
            )
        return result

    async def _request(
        self,
        method: str,
        endpoint: str,
        body: dict[str, Any] | None,
        files: list[tuple[str, tuple[str, Any, str]]],
    ) -> httpx.Response:
        if files:
            return await self._client.request(
                method,
                endpoint,
                data={"message": serialize_body(body)},
                files=files,
            )
        if body is None:
            return await self._client.request(method, endpoint)
        return await self._client.request(
            method,
            endpoint,
            content=serialize_body(body),
            headers={"Content-Type": "application/json"},
        )
