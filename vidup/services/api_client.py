"""HTTP adapter for the chunk upload API."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import TransportError
from ..models import ChunkDescriptor, FinalizeResult
from ..orchestrator.cancellation import CancellationToken
from ..protocols import IFileRef
from ..utils.naming import encode_uri_component

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_ENDPOINT = "/UploadChunk"
FINALIZE_ENDPOINT = "/FinalizeUpload"


def extract_url(payload: Any) -> Optional[str]:
    """Find the `url` field of a finalize response, whatever its casing."""
    if not isinstance(payload, dict):
        return None
    for key, value in payload.items():
        if isinstance(key, str) and key.lower() == "url" and value:
            return str(value)
    return None


class HTTPChunkTransport:
    """
    HTTP client adapter for chunked uploads.

    Implements ITransport protocol. No retries: a failed request is reported
    to the orchestrator straight away.

    Usage:
        async with HTTPChunkTransport("https://host/api/Users") as transport:
            await orchestrator.run(task, transport)
    """

    def __init__(
        self,
        base_url: str,
        user_id: int = 1,
        timeout: int = 60,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._user_id = user_id
        self._timeout = timeout
        self._http_transport = http_transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._http_transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _form(self, upload_name: str, mime_type: str, total_chunks: int) -> Dict[str, str]:
        return {
            "FileName": encode_uri_component(upload_name),
            "MimeType": mime_type,
            "TotalChunks": str(total_chunks),
            "UserId": str(self._user_id),
        }

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPChunkTransport not initialized. Use 'async with' context.")
        return self._client

    async def upload_chunk(
        self,
        file_ref: IFileRef,
        chunk: ChunkDescriptor,
        total_chunks: int,
        upload_name: str,
        mime_type: str,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        client = self._require_client()
        token = token or CancellationToken()

        payload = await token.guard(file_ref.read_range(chunk.byte_start, chunk.byte_end))
        data = self._form(upload_name, mime_type, total_chunks)
        data["ChunkIndex"] = str(chunk.index)
        files = {"Chunk": (upload_name, payload, mime_type)}

        try:
            response = await token.guard(
                client.post(UPLOAD_CHUNK_ENDPOINT, data=data, files=files)
            )
        except (httpx.RequestError, httpx.TimeoutException) as exc:
            raise TransportError(
                f"Chunk {chunk.index} failed: {exc}", chunk_index=chunk.index
            ) from exc

        if not response.is_success:
            raise TransportError(
                f"Chunk {chunk.index} failed (HTTP {response.status_code})",
                chunk_index=chunk.index,
                status_code=response.status_code,
            )

        logger.debug(f"{upload_name}: chunk {chunk.index + 1}/{total_chunks} accepted ({chunk.length} bytes)")
        try:
            return response.json()
        except ValueError:
            return response.text

    async def finalize(
        self,
        file_ref: IFileRef,
        total_chunks: int,
        upload_name: str,
        mime_type: str,
    ) -> FinalizeResult:
        client = self._require_client()
        data = self._form(upload_name, mime_type, total_chunks)
        # Multipart body like the chunk requests, with no file part
        files = {name: (None, value) for name, value in data.items()}

        try:
            response = await client.post(FINALIZE_ENDPOINT, files=files)
        except (httpx.RequestError, httpx.TimeoutException) as exc:
            raise TransportError(f"Finalize failed: {exc}") from exc

        if not response.is_success:
            raise TransportError(
                f"Finalize failed (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError(f"Finalize returned invalid JSON: {response.text[:200]}") from exc

        url = extract_url(body)
        if not url:
            raise TransportError(f"Finalize response has no url: {body}")
        return FinalizeResult(url=url)
