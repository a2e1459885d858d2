# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

import json, re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

import httpx
from fastapi import Body, Depends, FastAPI, Header, HTTPException, Path, Query
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator, model_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

API_KEY = "test-key"
BASE_URL = "http://docseek.test"

SAMPLE_DOCS = [
    {"url": "https://img.example.com/monkey-selfie.jpg",
     "description": "A monkey taking a selfie with a camera"},
    {"url": "https://img.example.com/monkey-tree.jpg",
     "description": "A monkey sitting in a tree"},
    {"url": None,
     "description": "Vector databases store embeddings for similarity search"},
    {"url": "https://img.example.com/cat.jpg",
     "description": "A cat sleeping on a sofa", "metadata": {"lang": "en"}},
]


# ---------------- fake remote API ----------------

class DocIn(BaseModel):
    url: str | None = None
    description: str | None = None
    metadata: Dict[str, Any] | None = None

    @field_validator("url")
    @classmethod
    def _http_url(cls, v):
        if v is not None and not re.match(r"^https?://", v):
            raise ValueError("Invalid url")
        return v

    @model_validator(mode="after")
    def _url_or_description(self):
        if not self.url and not self.description:
            raise ValueError("url or description is required")
        return self


class CreateBody(BaseModel):
    documents: List[DocIn]


class SearchBody(BaseModel):
    url: str | None = None
    description: str | None = None
    threshold: float | None = None
    topK: int | None = Field(None, ge=1)


class RecommendBody(BaseModel):
    topK: int | None = Field(None, ge=1)
    threshold: float | None = None


def _tokens(text: str | None) -> set:
    return set(re.findall(r"[a-z0-9]+", (text or "").lower()))

def _score(query: set, doc: Dict[str, Any]) -> float:
    other = _tokens(doc.get("description")) | _tokens(doc.get("url"))
    if not query or not other:
        return 0.0
    return round(len(query & other) / len(query | other), 4)

def _rank(query: set, docs, top_k: int | None, threshold: float | None):
    hits = [dict(d, score=_score(query, d)) for d in docs]
    hits = [h for h in hits if h["score"] >= (threshold or 0.0)]
    hits.sort(key=lambda h: h["score"], reverse=True)
    return hits[:top_k or 10]

def _issues(exc: RequestValidationError) -> List[Dict[str, Any]]:
    out = []
    for e in exc.errors():
        loc = list(e.get("loc", ()))
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        out.append({"code": e.get("type"), "path": loc, "message": e.get("msg")})
    return out


def build_fake_api(api_key: str = API_KEY, documents=SAMPLE_DOCS) -> FastAPI:
    """In-process stand-in for the remote API, same wire contract."""

    def check_key(x_api_key: str | None = Header(None)):
        if x_api_key != api_key:
            raise HTTPException(status_code=403, detail="Forbidden")

    app = FastAPI(dependencies=[Depends(check_key)])
    app.state.docs = {}
    app.state.next_id = 1

    def _add(doc: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        stored = {"id": app.state.next_id, "url": doc.get("url"),
                  "description": doc.get("description"),
                  "metadata": doc.get("metadata"), "timestamp": now}
        app.state.docs[stored["id"]] = stored
        app.state.next_id += 1
        return stored

    for d in documents:
        _add(d)

    def _get(doc_id: int) -> Dict[str, Any]:
        doc = app.state.docs.get(doc_id)
        if doc is None:
            raise HTTPException(status_code=404, detail="Document Not Found")
        return doc

    @app.exception_handler(RequestValidationError)
    async def _invalid(request, exc):
        return JSONResponse(
            {"error": {"name": "ValidationError", "issues": _issues(exc)}},
            status_code=400,
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request, exc):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.get("/document")
    def list_documents(limit: int = Query(20, ge=0), offset: int = Query(0, ge=0)):
        docs = list(app.state.docs.values())[offset:offset + limit]
        return {"documents": docs, "limit": limit, "offset": offset, "count": len(docs)}

    @app.get("/document/{doc_id}")
    def get_document(doc_id: int = Path(ge=0)):
        return {"document": _get(doc_id)}

    @app.delete("/document/{doc_id}")
    def delete_document(doc_id: int = Path(ge=0)):
        doc = _get(doc_id)
        del app.state.docs[doc_id]
        return {"document": doc}

    @app.post("/document")
    def create_documents(body: CreateBody):
        out = []
        for d in body.documents:
            stored = _add(d.model_dump())
            out.append({"success": True, "url": stored["url"],
                        "description": stored["description"],
                        "metadata": stored["metadata"]})
        return out

    @app.post("/search")
    def search(body: SearchBody):
        query = _tokens(body.description) | _tokens(body.url)
        hits = _rank(query, app.state.docs.values(), body.topK, body.threshold)
        return {"hits": hits, "count": len(hits)}

    @app.post("/document/{doc_id}/recommend")
    def recommend(doc_id: int = Path(ge=0), body: RecommendBody | None = Body(None)):
        src = _get(doc_id)
        body = body or RecommendBody()
        query = _tokens(src["description"]) | _tokens(src["url"])
        others = [d for d in app.state.docs.values() if d["id"] != doc_id]
        hits = _rank(query, others, body.topK, body.threshold)
        return {"hits": hits, "count": len(hits)}

    return app


def fake_transport(app: FastAPI | None = None) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=app or build_fake_api())


# ---------------- recording transport ----------------

class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it answered."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response] | None = None):
        self.requests: List[httpx.Request] = []

        def _handle(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            if handler is None:
                return httpx.Response(200, json={"ok": True})
            return handler(request)

        super().__init__(_handle)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)
