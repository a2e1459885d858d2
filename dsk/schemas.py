# (C) 2025, 2026 Rodrigo Rodrigues da Silva <rodrigo@flowlexi.com>
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Wire shapes and the normalized response envelope.

Payload types are TypedDicts: they describe what the server sends and are
never validated at runtime. The envelope (`APISuccess` / `APIError`) is a
pair of pydantic models discriminated on ``ok``.
"""

from typing import Any, Generic, Literal, TypeVar, Union
from pydantic import BaseModel, ConfigDict
from typing_extensions import TypedDict

T = TypeVar("T")

Metadata = dict[str, Any]


# ---------------- request payloads ----------------

class CreateDocumentInput(TypedDict, total=False):
    """One document to index; the server expects a url and/or a description."""
    url: str | None
    description: str | None
    metadata: Metadata | None


class SearchDocumentsParams(TypedDict, total=False):
    """Body of POST /search, wire key spelling."""
    url: str | None
    description: str | None
    threshold: float
    topK: int


class RecommendationParams(TypedDict, total=False):
    topK: int
    threshold: float


# ---------------- response payloads ----------------

class _Identified(TypedDict):
    id: int


class Document(_Identified, total=False):
    url: str | None
    description: str | None
    metadata: Metadata | None


class SearchHit(Document, total=False):
    """Scored, read-only projection of a Document."""
    timestamp: str
    score: float


RecommendationHit = SearchHit


class GetDocumentsResponse(TypedDict):
    documents: list[Document]
    limit: int
    offset: int
    count: int


class GetDocumentByIdResponse(TypedDict):
    document: Document


class DeleteDocumentByIdResponse(TypedDict):
    document: Document


class CreateDocumentResult(TypedDict, total=False):
    success: bool
    url: str | None
    description: str | None
    metadata: Metadata | None


CreateDocumentsResponse = list[CreateDocumentResult]


class SearchDocumentsResponse(TypedDict):
    hits: list[SearchHit]
    count: int


class GetRecommendationsResponse(TypedDict):
    hits: list[RecommendationHit]
    count: int


# ---------------- envelope ----------------

class ValidationIssue(BaseModel):
    """One field-level failure reported by the server."""
    model_config = ConfigDict(extra="allow")

    code: str
    expected: Any = None
    received: Any = None
    path: list[str | int] = []
    message: str = ""


class ValidationError(BaseModel):
    """Structured 400 error body; both fields must be present to match."""
    model_config = ConfigDict(extra="allow")

    name: str
    issues: list[ValidationIssue]


class APIRequestError(Exception):
    """Raised by `APIError.unwrap()`; never by the client itself."""

    def __init__(self, status: int, error: "ValidationError | str | None"):
        self.status = status
        self.error = error
        if isinstance(error, ValidationError):
            detail = "; ".join(i.message for i in error.issues) or error.name
        else:
            detail = error or "request failed"
        super().__init__(f"[{status}] {detail}")


class APISuccess(BaseModel, Generic[T]):
    """2xx response; ``data`` is the parsed JSON body, trusted as-is."""
    ok: Literal[True] = True
    status: int
    data: T

    def unwrap(self) -> T:
        return self.data


class APIError(BaseModel):
    """Server error (status >= 400) or client error (status 0)."""
    ok: Literal[False] = False
    status: int
    error: ValidationError | str | None = None

    def unwrap(self):
        raise APIRequestError(self.status, self.error)


APIResponse = Union[APISuccess[T], APIError]
