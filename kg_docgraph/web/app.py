from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import (
    FastAPI,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from kg_docgraph.chat.session import answer_question
from kg_docgraph.config.settings import settings
from kg_docgraph.errors import CollaboratorError, EntityStoreError, LLMError, ValidationError
from kg_docgraph.graph.enhance import MutationReport, delete_node, update_node
from kg_docgraph.graph.session import ViewSession
from kg_docgraph.graph.schema import ProcessingStatus
from kg_docgraph.ingest.pipeline import process_file
from kg_docgraph.llm.client import LLMClient
from kg_docgraph.models.document import Document, Node, load_documents
from kg_docgraph.store import get_entity_store

logger = logging.getLogger("kg_docgraph.web")
logging.basicConfig(level=logging.INFO)


# -------------------------------------------------------------------
# Lifespan: build collaborators once at startup
# -------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup/shutdown handler:
    - Create the entity store client selected by settings
    - Create the LLM client
    - Create the lock serializing graph mutations
    """
    app.state.store = get_entity_store()
    app.state.llm = LLMClient()
    app.state.graph_lock = asyncio.Lock()
    logger.info("Using %s entity store", settings.STORE_BACKEND.value)

    yield


app = FastAPI(
    title="Document Knowledge Graph API",
    description="Browse, clean up and export knowledge graphs extracted from uploaded documents.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------------------------------------------------------
# Middleware / error mapping
# -------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Incoming request: {request.method} {request.url.path}")
    start = time.time()

    response = await call_next(request)

    duration_ms = (time.time() - start) * 1000
    logger.info(
        f"Completed {request.method} {request.url.path} "
        f"with status {response.status_code} in {duration_ms:.2f}ms"
    )

    return response


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(CollaboratorError)
async def _collaborator_error(request: Request, exc: CollaboratorError):
    if isinstance(exc, EntityStoreError) and exc.status_code == 404:
        return JSONResponse(status_code=404, content={"detail": str(exc)})
    logger.warning("Collaborator failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


# -------------------------------------------------------------------
# Models
# -------------------------------------------------------------------


class MergeRequest(BaseModel):
    label: str
    ids: Optional[List[str]] = None
    policy: Optional[str] = None


class NodeRef(BaseModel):
    paper_id: str
    id: str


class DeleteNodesRequest(BaseModel):
    """
    Either explicit `nodes` (document + node id), or `node_ids` picked from
    the orphans currently detected in the selected documents.
    """

    nodes: List[NodeRef] = Field(default_factory=list)
    node_ids: Optional[List[str]] = None
    per_document: bool = False
    ids: Optional[List[str]] = None


class ChatRequest(BaseModel):
    question: str
    ids: Optional[List[str]] = None


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------


def _get_store(app_obj: FastAPI) -> Any:
    store = getattr(app_obj.state, "store", None)
    if store is None:
        store = get_entity_store()
        app_obj.state.store = store
    return store


def _get_llm(app_obj: FastAPI) -> Any:
    llm = getattr(app_obj.state, "llm", None)
    if llm is None:
        llm = LLMClient()
        app_obj.state.llm = llm
    return llm


def _list_documents(store: Any) -> List[Dict[str, Any]]:
    return store.list(settings.DOCUMENT_ENTITY, sort="-created_date")


def _view(
    store: Any,
    ids: Optional[List[str]],
    relink: bool = False,
) -> ViewSession:
    """
    Build a ViewSession. Without explicit ids the first completed document
    is selected.
    """
    records = _list_documents(store)
    if not ids:
        completed = [d for d in load_documents(records) if d.is_completed]
        ids = [completed[0].id] if completed else []
    return ViewSession(records, ids, relink_duplicates=relink)


def _report_response(report: MutationReport) -> JSONResponse:
    if report.ok:
        status_code = 200
    elif report.succeeded:
        status_code = 207
    else:
        status_code = 502
    return JSONResponse(status_code=status_code, content=report.to_dict())


async def _locked(app_obj: FastAPI, fn, *args, **kwargs):
    lock: Optional[asyncio.Lock] = getattr(app_obj.state, "graph_lock", None)
    if lock is None:
        return await run_in_threadpool(fn, *args, **kwargs)
    async with lock:
        return await run_in_threadpool(fn, *args, **kwargs)


def _dump(graph) -> Dict[str, Any]:
    return graph.model_dump(mode="json", exclude_none=True)


def _upload_path(filename: Optional[str]) -> Path:
    """Fresh directory under uploads_dir holding only the client's base name."""
    name = Path(filename or "").name
    if name in ("", ".", ".."):
        name = "upload"
    target = settings.uploads_dir / uuid.uuid4().hex
    target.mkdir(parents=True, exist_ok=True)
    return target / name


# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------


@app.get("/health", summary="Health check")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/documents", summary="List documents, newest first")
def list_documents(
    request: Request,
    status: Optional[ProcessingStatus] = Query(None, description="Only documents in this status."),
) -> List[Dict[str, Any]]:
    docs = load_documents(_list_documents(_get_store(request.app)))
    if status is not None:
        docs = [d for d in docs if d.processing_status == status]
    return [
        d.model_dump(mode="json", exclude={"knowledge_graph", "extracted_content"}, exclude_none=True)
        for d in docs
    ]


@app.post(
    "/documents/upload",
    summary="Upload a file and run extraction + knowledge graph generation",
)
async def upload_document(
    request: Request,
    file: UploadFile = File(..., description="Document to ingest"),
    schema_name: str = Form("general", alias="schema"),
    model_name: Optional[str] = Form(None),
) -> Dict[str, Any]:
    app_obj = request.app
    path = await run_in_threadpool(_upload_path, file.filename)
    await run_in_threadpool(path.write_bytes, await file.read())

    outcome = await run_in_threadpool(
        process_file,
        _get_store(app_obj),
        _get_llm(app_obj),
        path,
        schema=schema_name,
        model_name=model_name,
    )
    return {
        "file_name": outcome.file_name,
        "document_id": outcome.document_id,
        "status": outcome.status.value,
        "error": outcome.error,
    }


@app.get("/graph", summary="Combined knowledge graph of the selected documents")
def get_graph(
    request: Request,
    ids: Optional[List[str]] = Query(None),
    q: Optional[str] = Query(None, description="Filter nodes by label or type."),
    relink: bool = Query(False, description="Rewrite edges onto deduplicated nodes."),
) -> Dict[str, Any]:
    view = _view(_get_store(request.app), ids, relink=relink)
    graph = view.combined(q)
    payload = _dump(graph)
    payload["selected_ids"] = view.selected_ids
    payload["dropped_unlabeled"] = view.stats.dropped_unlabeled
    return payload


@app.get("/graph/stats", summary="Counts for the selected documents' graph")
def get_graph_stats(
    request: Request,
    ids: Optional[List[str]] = Query(None),
) -> Dict[str, Any]:
    return _view(_get_store(request.app), ids).statistics()


@app.get("/graph/duplicates", summary="Duplicate entity groups")
def get_duplicates(
    request: Request,
    ids: Optional[List[str]] = Query(None),
) -> List[Dict[str, Any]]:
    return [g.to_dict() for g in _view(_get_store(request.app), ids).duplicates()]


@app.post(
    "/graph/duplicates/merge",
    summary="Merge one duplicate group into a single node",
)
async def merge_duplicates(payload: MergeRequest, request: Request):
    store = _get_store(request.app)

    def _merge() -> MutationReport:
        view = _view(store, payload.ids)
        return view.merge(store, payload.label, policy=payload.policy)

    report = await _locked(request.app, _merge)
    return _report_response(report)


@app.get("/graph/orphans", summary="Nodes without any relationship")
def get_orphans(
    request: Request,
    ids: Optional[List[str]] = Query(None),
    per_document: bool = Query(False),
) -> List[Dict[str, Any]]:
    view = _view(_get_store(request.app), ids)
    return [
        n.model_dump(mode="json", exclude_none=True)
        for n in view.orphans(per_document=per_document)
    ]


@app.post(
    "/graph/orphans/delete",
    summary="Delete nodes (normally orphans) from their documents",
)
async def delete_orphans(payload: DeleteNodesRequest, request: Request):
    store = _get_store(request.app)

    def _delete() -> MutationReport:
        view = _view(store, payload.ids)
        if payload.nodes:
            return view.delete(store, [(ref.paper_id, ref.id) for ref in payload.nodes])
        if payload.node_ids is None:
            return MutationReport(action="deleted")
        return view.delete_orphans(store, payload.node_ids, per_document=payload.per_document)

    report = await _locked(request.app, _delete)
    return _report_response(report)


def _get_document(store: Any, document_id: str) -> Document:
    (doc,) = load_documents([store.get(settings.DOCUMENT_ENTITY, document_id)])
    return doc


@app.put(
    "/documents/{document_id}/nodes/{node_id}",
    summary="Edit one node of a document's graph",
)
async def put_node(document_id: str, node_id: str, node: Dict[str, Any], request: Request):
    store = _get_store(request.app)
    updated = Node.model_validate({**node, "id": node_id})

    def _update() -> MutationReport:
        return update_node(store, _get_document(store, document_id), updated)

    report = await _locked(request.app, _update)
    return _report_response(report)


@app.delete(
    "/documents/{document_id}/nodes/{node_id}",
    summary="Delete one node and its relationships",
)
async def remove_node(document_id: str, node_id: str, request: Request):
    store = _get_store(request.app)

    def _delete() -> MutationReport:
        return delete_node(store, _get_document(store, document_id), node_id)

    report = await _locked(request.app, _delete)
    if not report.attempted:
        raise HTTPException(status_code=404, detail=f"Node {node_id} not found in {document_id}")
    return _report_response(report)


@app.get("/graph/export", summary="Portable JSON snapshot of the combined graph")
def get_export(
    request: Request,
    ids: Optional[List[str]] = Query(None),
    q: Optional[str] = Query(None),
) -> Dict[str, Any]:
    return _view(_get_store(request.app), ids).export(q)


@app.post("/chat", summary="Ask a question about the selected documents")
async def chat(payload: ChatRequest, request: Request) -> Dict[str, Any]:
    store = _get_store(request.app)
    records = await run_in_threadpool(_list_documents, store)
    docs = load_documents(records)
    if payload.ids:
        wanted = set(payload.ids)
        docs = [d for d in docs if d.id in wanted]

    try:
        answer = await run_in_threadpool(
            answer_question, _get_llm(request.app), payload.question, docs
        )
    except LLMError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return answer.model_dump(mode="json", exclude_none=True)
