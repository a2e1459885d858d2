# (C) 2025, 2026 Rodrigo Rodrigues da Silva <rodrigo@flowlexi.com>
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations
import json
from typing import Any, Literal, Mapping, Sequence

import httpx
import pydantic

from .config import ClientConfig, Config, client_config
from .log import get_logger, ops_event
from .schemas import (
    APIError,
    APIResponse,
    APISuccess,
    CreateDocumentInput,
    CreateDocumentsResponse,
    DeleteDocumentByIdResponse,
    GetDocumentByIdResponse,
    GetDocumentsResponse,
    GetRecommendationsResponse,
    SearchDocumentsParams,
    SearchDocumentsResponse,
    ValidationError,
)

log = get_logger("client")

UNKNOWN_CLIENT_ERROR = "Unknown client error occurred"

Method = Literal["GET", "POST", "DELETE"]


def _query_value(value: Any) -> str:
    # JSON spelling: true/false, integral floats without ".0"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

def _query_pairs(params: Mapping[str, Any] | None) -> list[tuple[str, str]]:
    """Ordered (key, value) pairs with None entries dropped."""
    if not params:
        return []
    return [(k, _query_value(v)) for k, v in params.items() if v is not None]

def _compact(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}

def _server_error(body: Any, reason: str) -> ValidationError | str | None:
    """Pick ``error`` (or else ``message``) out of a non-2xx JSON body."""
    raw = None
    if isinstance(body, dict):
        raw = body.get("error")
        if raw is None:
            raw = body.get("message")
    if raw is None:
        return reason or None
    if isinstance(raw, dict):
        try:
            return ValidationError.model_validate(raw)
        except pydantic.ValidationError:
            log.warning("unrecognized structured error from server: %r", raw)
            return json.dumps(raw)
    return raw if isinstance(raw, str) else json.dumps(raw)


class Client:
    """
    Async client for the document index / semantic search API.

    Every endpoint returns an `APIResponse`: check ``ok`` before reading
    ``data`` (success) or ``error`` (server error, or status 0 when the
    request never completed). Expected failures are never raised.

        client = Client(api_key="...", base_url="https://api.example.com")
        res = await client.get_document_by_id(42)
        if res.ok:
            print(res.data["document"])
        else:
            print(res.status, res.error)
    """

    def __init__(
            self,
            api_key: str | None = None,
            base_url: str | None = None,
            *,
            transport: httpx.AsyncBaseTransport | None = None):
        if not api_key:
            raise ValueError("API key is required to initialize the Client.")
        if not base_url:
            raise ValueError("URL endpoint is required to initialize the Client.")
        self._config = ClientConfig(api_key=api_key, base_url=base_url)
        self._transport = transport

    @classmethod
    def from_config(
            cls,
            cfg: Config | None = None,
            *,
            transport: httpx.AsyncBaseTransport | None = None,
            **overrides: Any) -> "Client":
        """Build a client from DOCSEEK_* env / docseek.yml settings."""
        cc = client_config(cfg, **overrides)
        return cls(cc.api_key, cc.base_url, transport=transport)

    @property
    def config(self) -> ClientConfig:
        return self._config

    def __repr__(self) -> str:
        return f"Client(base_url={self._config.base_url!r})"

    # ----------------- dispatcher ------------------

    async def _request(
            self,
            path: str,
            method: Method,
            params: Mapping[str, Any] | None = None,
            body: Any = None) -> APIResponse[Any]:
        try:
            url = f"{self._config.base_url}{path}"
            headers = {
                "x-api-key": self._config.api_key,
                "Accept": "application/json",
            }
            content = None
            if body is not None:
                headers["Content-Type"] = "application/json"
                content = json.dumps(body)
            query = _query_pairs(params) if method == "GET" else []

            async with httpx.AsyncClient(transport=self._transport) as http:
                response = await http.request(
                    method, url,
                    params=query or None,
                    headers=headers,
                    content=content,
                )
            data = response.json()
        except Exception as e:
            log.warning("%s %s failed: %s", method, path, str(e) or type(e).__name__)
            return APIError(status=0, error=str(e) or UNKNOWN_CLIENT_ERROR)

        log.debug("%s %s -> %d", method, path, response.status_code)
        if response.is_success:
            return APISuccess(status=response.status_code, data=data)
        return APIError(
            status=response.status_code,
            error=_server_error(data, response.reason_phrase),
        )

    # ----------------- documents ------------------

    @ops_event("list_documents")
    async def list_documents(
            self,
            limit: int | None = None,
            offset: int | None = None) -> APIResponse[GetDocumentsResponse]:
        return await self._request(
            "/document", "GET", {"limit": limit, "offset": offset})

    @ops_event("get_document", doc_id="doc_id")
    async def get_document_by_id(
            self, doc_id: int) -> APIResponse[GetDocumentByIdResponse]:
        return await self._request(f"/document/{doc_id}", "GET")

    @ops_event("delete_document", doc_id="doc_id")
    async def delete_document_by_id(
            self, doc_id: int) -> APIResponse[DeleteDocumentByIdResponse]:
        return await self._request(f"/document/{doc_id}", "DELETE")

    @ops_event("create_documents")
    async def create_documents(
            self,
            documents: Sequence[CreateDocumentInput]) -> APIResponse[CreateDocumentsResponse]:
        """Index documents; the result list matches ``documents`` one to one."""
        return await self._request(
            "/document", "POST", body={"documents": list(documents)})

    # ----------------- retrieval ------------------

    @ops_event("search")
    async def search_documents(
            self,
            params: SearchDocumentsParams | Mapping[str, Any] | None = None,
            *,
            url: str | None = None,
            description: str | None = None,
            threshold: float | None = None,
            top_k: int | None = None) -> APIResponse[SearchDocumentsResponse]:
        """
        Semantic search by url and/or description. ``params`` uses the wire
        keys (``topK``) and is forwarded as-is; keyword arguments that are not
        None override it.
        """
        body = dict(params or {})
        body.update(_compact({
            "url": url,
            "description": description,
            "threshold": threshold,
            "topK": top_k,
        }))
        return await self._request("/search", "POST", body=body)

    @ops_event("recommend", doc_id="doc_id")
    async def get_recommendations(
            self,
            doc_id: int,
            top_k: int | None = None,
            threshold: float | None = None) -> APIResponse[GetRecommendationsResponse]:
        body = _compact({"topK": top_k, "threshold": threshold})
        return await self._request(
            f"/document/{doc_id}/recommend", "POST", body=body or None)
