"""
FastAPI transport for the query service.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from lexium.config import APP_VERSION, CORS_ORIGINS, LOG_LEVEL
from lexium.envelope import ResponseEnvelope
from lexium.service import QueryService
from lexium.shaper import empty_question_envelope
from lexium.store import DirectoryStorage, SnapshotStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["lexium"])


class DatasetColumn(BaseModel):
    name: str
    kind: str


class DatasetInfo(BaseModel):
    table: str | None = None
    columns: list[DatasetColumn] = Field(default_factory=list)
    rows: int = 0
    documents: list[str] = Field(default_factory=list)
    loaded_at: str


def _service(request: Request) -> QueryService:
    return request.app.state.query_service


def _dataset_info(service: QueryService) -> DatasetInfo:
    snapshot = service.store.current()
    return DatasetInfo(
        table=snapshot.table_name,
        columns=[DatasetColumn(name=column.name, kind=column.kind) for column in snapshot.dataset.columns],
        rows=snapshot.dataset.row_count,
        documents=sorted(snapshot.documents.keys()),
        loaded_at=snapshot.loaded_at,
    )


@router.get("/api/ping")
def ping() -> dict[str, Any]:
    return {"ok": True, "pong": "pong", "version": APP_VERSION}


@router.get("/api/answer", response_model=ResponseEnvelope)
def answer(request: Request, q: str = Query(default="")) -> ResponseEnvelope:
    if not q.strip():
        raise HTTPException(status_code=400, detail=empty_question_envelope().general)
    return _service(request).answer(q)


@router.post("/api/reload", response_model=DatasetInfo)
def reload_snapshot(request: Request) -> DatasetInfo:
    service = _service(request)
    service.store.reload()
    return _dataset_info(service)


@router.get("/api/dataset", response_model=DatasetInfo)
def dataset_info(request: Request) -> DatasetInfo:
    return _dataset_info(_service(request))


def build_standalone_app(service: QueryService | None = None) -> FastAPI:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if service is None:
        store = SnapshotStore(DirectoryStorage())
        store.reload()
        service = QueryService(store)

    api_app = FastAPI(
        title="Lexium",
        description="Ad-hoc analytical questions over the student table and its documents.",
        version=APP_VERSION,
    )
    api_app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    api_app.state.query_service = service
    api_app.include_router(router)
    return api_app


app = build_standalone_app()
