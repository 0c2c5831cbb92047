"""Vercel Blob HTTP client.

Built on the azure-core pipeline: a retry policy with exponential backoff,
static auth headers, a user agent and redacted HTTP logging. Public object
URLs are fetched through a second pipeline that carries no credential.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

from azure.core import PipelineClient
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)
from azure.core.pipeline.policies import (
    HeadersPolicy,
    HttpLoggingPolicy,
    RetryPolicy,
    UserAgentPolicy,
)
from azure.core.rest import HttpRequest, HttpResponse

from . import __version__
from .config import Config

logger = logging.getLogger(__name__)

API_VERSION = "7"
LIST_PAGE_SIZE = 1000
MULTIPART_PART_SIZE = 8 * 1024 * 1024

_ERROR_MAP = {
    401: ClientAuthenticationError,
    403: ClientAuthenticationError,
    404: ResourceNotFoundError,
}


@dataclass(frozen=True)
class PutResult:
    url: str
    download_url: str
    pathname: str
    content_type: Optional[str] = None

    @classmethod
    def from_json(cls, body: dict) -> "PutResult":
        return cls(
            url=body["url"],
            download_url=body.get("downloadUrl") or body["url"],
            pathname=body.get("pathname", ""),
            content_type=body.get("contentType"),
        )


@dataclass(frozen=True)
class RemoteObject:
    """One entry of a listing. Read-only view of a remote blob."""

    key: str
    url: str
    download_url: Optional[str] = None
    size: Optional[int] = None
    uploaded_at: Optional[str] = None

    @classmethod
    def from_json(cls, body: dict) -> "RemoteObject":
        return cls(
            key=body["pathname"],
            url=body["url"],
            download_url=body.get("downloadUrl"),
            size=body.get("size"),
            uploaded_at=body.get("uploadedAt"),
        )


class BlobStore:
    """Thin client for the put / list / fetch operations of Vercel Blob."""

    def __init__(self, cfg: Config, transport: Any = None) -> None:
        self.cfg = cfg
        token = cfg.require_token()

        retry = RetryPolicy(
            retry_total=cfg.max_retries,
            retry_backoff_factor=cfg.retry_base_delay,
        )
        user_agent = UserAgentPolicy(base_user_agent=f"blob-cli/{__version__}")
        api_headers = HeadersPolicy(
            base_headers={
                "authorization": f"Bearer {token}",
                "x-api-version": API_VERSION,
            }
        )

        self._api = PipelineClient(
            base_url=cfg.api_url,
            policies=[api_headers, user_agent, retry, HttpLoggingPolicy()],
            transport=transport,
        )
        self._public = PipelineClient(
            base_url=cfg.api_url,
            policies=[user_agent, retry, HttpLoggingPolicy()],
            transport=transport,
        )

    def close(self) -> None:
        self._api.close()
        self._public.close()

    def __enter__(self) -> "BlobStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    def _send(self, client: PipelineClient, request: HttpRequest) -> HttpResponse:
        response = client.send_request(
            request,
            connection_timeout=self.cfg.connection_timeout,
            read_timeout=self.cfg.read_timeout,
        )
        if not 200 <= response.status_code < 300:
            error_type = _ERROR_MAP.get(response.status_code, HttpResponseError)
            raise error_type(message=_error_message(response), response=response)
        return response

    def _api_url(self, path: str = "/") -> str:
        return f"{self.cfg.api_url}{path}"

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        multipart: bool = False,
    ) -> PutResult:
        """Store ``data`` under exactly ``key``, overwriting any previous object."""
        headers = {
            "x-content-type": content_type,
            "x-add-random-suffix": "0",
            "x-vercel-blob-access": "public",
        }
        if multipart:
            return self._put_multipart(key, data, headers)

        request = HttpRequest(
            "PUT",
            self._api_url("/"),
            params={"pathname": key},
            headers=headers,
            content=data,
        )
        return PutResult.from_json(_json_object(self._send(self._api, request)))

    def _put_multipart(self, key: str, data: bytes, headers: dict) -> PutResult:
        create = HttpRequest(
            "POST",
            self._api_url("/mpu"),
            params={"pathname": key},
            headers={**headers, "x-mpu-action": "create"},
        )
        body = _json_object(self._send(self._api, create))
        upload_key, upload_id = body["key"], body["uploadId"]
        logger.debug(f"Multipart upload {upload_id} created for '{key}'")

        mpu_headers = {
            **headers,
            "x-mpu-key": quote(upload_key, safe=""),
            "x-mpu-upload-id": upload_id,
        }
        parts = []
        total_parts = max(1, -(-len(data) // MULTIPART_PART_SIZE))
        for index in range(total_parts):
            part_number = index + 1
            chunk = data[index * MULTIPART_PART_SIZE:part_number * MULTIPART_PART_SIZE]
            request = HttpRequest(
                "POST",
                self._api_url("/mpu"),
                params={"pathname": key},
                headers={
                    **mpu_headers,
                    "x-mpu-action": "upload",
                    "x-mpu-part-number": str(part_number),
                },
                content=chunk,
            )
            etag = _json_object(self._send(self._api, request))["etag"]
            parts.append({"partNumber": part_number, "etag": etag})
            logger.debug(f"'{key}': part {part_number}/{total_parts} uploaded")

        complete = HttpRequest(
            "POST",
            self._api_url("/mpu"),
            params={"pathname": key},
            headers={**mpu_headers, "x-mpu-action": "complete"},
            json=parts,
        )
        return PutResult.from_json(_json_object(self._send(self._api, complete)))

    def list_objects(self, prefix: Optional[str] = None) -> list[RemoteObject]:
        """Return every object whose key starts with ``prefix``, across all pages."""
        objects: list[RemoteObject] = []
        cursor: Optional[str] = None
        while True:
            params: dict = {"limit": str(LIST_PAGE_SIZE)}
            if prefix:
                params["prefix"] = prefix
            if cursor:
                params["cursor"] = cursor
            request = HttpRequest("GET", self._api_url("/"), params=params)
            body = _json_object(self._send(self._api, request))

            blobs = body.get("blobs") or []
            if not isinstance(blobs, list) or not all(isinstance(b, dict) for b in blobs):
                raise ValueError("Unexpected listing body from blob store")
            objects.extend(RemoteObject.from_json(b) for b in blobs)
            cursor = body.get("cursor")
            if not body.get("hasMore") or not cursor:
                return objects

    def fetch(self, url: str) -> bytes:
        """GET a public object URL without credentials."""
        response = self._send(self._public, HttpRequest("GET", url))
        return response.content


def _error_message(response: HttpResponse) -> str:
    try:
        body = response.json()
    except (ValueError, json.JSONDecodeError):
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        return f"{error.get('code', 'error')}: {error.get('message', '')}".strip()
    return f"HTTP {response.status_code} {response.reason or ''}".strip()


def _json_object(response: HttpResponse) -> dict:
    body = response.json()
    if not isinstance(body, dict):
        raise ValueError(
            f"Unexpected response body from blob store: {type(body).__name__}"
        )
    return body
