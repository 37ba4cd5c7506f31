"""
RDF NodeGraph Web API

FastAPI application exposing store nodes as Linked Data resources:
- GET returns a resource's triples as N-Triples
- PUT replaces a resource's properties (creating it when missing)
- PATCH applies a SPARQL Update
- DELETE removes a resource and its descendants
- Long-running transactions under /rest/fcr:tx and /rest/tx:<id>/...

A request outside a transaction runs in its own session, committed only
when the diff report has no fatal problem.
"""

import logging
from typing import Callable, Optional

from fastapi import APIRouter, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from rdf_nodegraph import __version__
from rdf_nodegraph.config import NodeGraphConfig, configure_logging
from rdf_nodegraph.errors import (
    AccessDeniedException,
    IdentifierTranslationError,
    MalformedRdfException,
    NodeNotFoundError,
    SchemaConstraintViolation,
    UnknownCategoryError,
)
from rdf_nodegraph.formats.ntriples import parse_ntriples, serialize_ntriples
from rdf_nodegraph.identifiers import TX_SEGMENT_PREFIX, IdentifierTranslator
from rdf_nodegraph.rdf.categories import ALL_CATEGORIES, WRITABLE_CATEGORIES
from rdf_nodegraph.rdf.diff import DiffReport
from rdf_nodegraph.resource import (
    canonical_link,
    ensure_node,
    etag,
    get_triples,
    replace_properties,
    update_properties,
)
from rdf_nodegraph.storage.session import Repository, Session, SessionState

logger = logging.getLogger(__name__)

NTRIPLES_MEDIA_TYPE = "application/n-triples"
SPARQL_UPDATE_MEDIA_TYPE = "application/sparql-update"
RDF_MEDIA_TYPES = (NTRIPLES_MEDIA_TYPE, "text/plain")


# Pydantic models for API
class ProblemModel(BaseModel):
    """A statement that could not be applied."""
    triple: str
    reason: str
    error: str


class DiffReportModel(BaseModel):
    """Outcome of a write."""
    path: Optional[str] = None
    mutations: int = 0
    has_fatal: bool = False
    problems: list[ProblemModel] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: DiffReport) -> "DiffReportModel":
        return cls(**report.to_dict())


class TransactionModel(BaseModel):
    """A long-running transaction."""
    id: str
    location: str


def _split_path(raw: str) -> tuple[Optional[str], str]:
    """Split a request path into (transaction id, store path)."""
    segments = raw.split("/")
    tx_id = None
    if segments and segments[0].startswith(TX_SEGMENT_PREFIX):
        tx_id = segments[0][len(TX_SEGMENT_PREFIX):]
        segments = segments[1:]
    while segments and segments[-1] == "":
        segments.pop()
    path = "/" + "/".join(segments)
    IdentifierTranslator.validate_path(path)
    return tx_id, path


def _report_error(status_code: int, e: Exception) -> HTTPException:
    report = getattr(e, "report", None)
    detail = {"error": type(e).__name__, "message": str(e)}
    if report is not None:
        detail["report"] = DiffReportModel.from_report(report).model_dump()
    return HTTPException(status_code=status_code, detail=detail)


async def _read_text(request: Request) -> str:
    try:
        return (await request.body()).decode("utf-8")
    except UnicodeDecodeError as e:
        raise HTTPException(400, f"Request body is not valid UTF-8: {e}")


def create_ldp_router(repository: Repository, config: NodeGraphConfig) -> APIRouter:
    """Create router for Linked Data resource endpoints."""
    router = APIRouter(prefix="/rest", tags=["LDP"])
    translator = IdentifierTranslator(config.base_uri)
    policy = config.access.to_policy()
    transactions: dict[str, Session] = {}

    def session_for(tx_id: Optional[str]) -> tuple[Session, IdentifierTranslator, bool]:
        """Session, translator and whether this request owns the session."""
        if tx_id is None:
            return repository.begin(policy), translator, True
        session = transactions.get(tx_id)
        if session is None or session.state != SessionState.ACTIVE:
            raise HTTPException(404, f"Transaction not found: {tx_id}")
        return session, translator.for_transaction(tx_id), False

    def run(raw_path: str, work: Callable[[Session, IdentifierTranslator, str], Response]) -> Response:
        try:
            tx_id, path = _split_path(raw_path)
        except IdentifierTranslationError as e:
            raise HTTPException(400, str(e))

        session, scoped, owned = session_for(tx_id)
        try:
            response = work(session, scoped, path)
        except NodeNotFoundError as e:
            if owned:
                session.discard()
            raise HTTPException(404, f"Resource not found: {e.path}")
        except AccessDeniedException as e:
            if owned:
                session.discard()
            raise _report_error(403, e)
        except SchemaConstraintViolation as e:
            if owned:
                session.discard()
            raise _report_error(409, e)
        except (MalformedRdfException, IdentifierTranslationError, UnknownCategoryError) as e:
            if owned:
                session.discard()
            raise _report_error(400, e)
        except HTTPException:
            if owned and session.state == SessionState.ACTIVE:
                session.discard()
            raise

        if owned and session.state == SessionState.ACTIVE:
            # Read-only sessions are not published
            if session.mutations:
                session.commit()
            else:
                session.discard()
        return response

    def check_report(session: Session, report: DiffReport, owned: bool) -> None:
        if report.has_fatal:
            if owned:
                session.discard()
            raise HTTPException(400, DiffReportModel.from_report(report).model_dump())

    # ==========================================================================
    # Transactions
    # ==========================================================================

    @router.post("/fcr:tx", status_code=201, response_model=TransactionModel)
    async def begin_transaction(response: Response):
        """Start a long-running transaction."""
        session = repository.begin(policy)
        tx_id = session.begin_transaction()
        transactions[tx_id] = session
        location = f"{translator.base_uri}/{TX_SEGMENT_PREFIX}{tx_id}"
        response.headers["Location"] = location
        logger.info(f"Started transaction {tx_id}")
        return TransactionModel(id=tx_id, location=location)

    @router.post("/tx:{tx_id}/fcr:tx/{action}", status_code=204)
    async def finish_transaction(tx_id: str, action: str):
        """Commit (fcr:commit) or roll back (fcr:rollback) a transaction."""
        session = transactions.get(tx_id)
        if session is None:
            raise HTTPException(404, f"Transaction not found: {tx_id}")
        if action == "fcr:commit":
            session.commit()
        elif action == "fcr:rollback":
            session.discard()
        else:
            raise HTTPException(400, f"Unknown transaction action: {action}")
        del transactions[tx_id]
        logger.info(f"Finished transaction {tx_id}: {action}")
        return Response(status_code=204)

    # ==========================================================================
    # Resources
    # ==========================================================================

    @router.get("/{path:path}")
    async def get_resource(
        path: str,
        include: Optional[str] = Query(None, description="Comma-separated triple categories"),
        limit: Optional[int] = Header(None, description="Children to list (-1 = all)"),
    ):
        """Get a resource's triples as N-Triples."""
        categories = [c.strip() for c in include.split(",") if c.strip()] if include else list(ALL_CATEGORIES)
        child_limit = limit if limit is not None else config.default_child_limit

        def work(session: Session, scoped: IdentifierTranslator, store_path: str) -> Response:
            stream = get_triples(session, store_path, scoped, categories, child_limit=child_limit)
            body = serialize_ntriples(stream)
            headers = {"ETag": etag(session.get_node(store_path))}
            if scoped.transaction_id is not None:
                headers["Link"] = canonical_link(stream.topic.value)
            return Response(content=body, media_type=NTRIPLES_MEDIA_TYPE, headers=headers)

        return run(path, work)

    @router.put("/{path:path}")
    async def put_resource(path: str, request: Request):
        """Replace a resource's properties with the N-Triples body."""
        content_type = request.headers.get("content-type", NTRIPLES_MEDIA_TYPE).split(";")[0].strip()
        if content_type not in RDF_MEDIA_TYPES:
            raise HTTPException(415, f"Unsupported media type: {content_type}")
        body = await _read_text(request)
        try:
            desired = parse_ntriples(body)
        except ValueError as e:
            raise HTTPException(400, str(e))

        def work(session: Session, scoped: IdentifierTranslator, store_path: str) -> Response:
            created = ensure_node(session, store_path)
            current = get_triples(session, store_path, scoped, list(WRITABLE_CATEGORIES))
            report = replace_properties(
                session, store_path, scoped, desired, current, config.translation
            )
            check_report(session, report, scoped.transaction_id is None)
            if created:
                return Response(status_code=201, headers={"Location": scoped.to_uri(store_path)})
            return Response(status_code=204)

        return run(path, work)

    @router.patch("/{path:path}")
    async def patch_resource(path: str, request: Request):
        """Apply a SPARQL Update to a resource."""
        content_type = request.headers.get("content-type", "").split(";")[0].strip()
        if content_type != SPARQL_UPDATE_MEDIA_TYPE:
            raise HTTPException(415, f"PATCH requires {SPARQL_UPDATE_MEDIA_TYPE}")
        update_text = await _read_text(request)

        def work(session: Session, scoped: IdentifierTranslator, store_path: str) -> Response:
            if not session.exists(store_path):
                raise NodeNotFoundError(store_path)
            current = get_triples(session, store_path, scoped, list(WRITABLE_CATEGORIES))
            report = update_properties(
                session, store_path, scoped, update_text, current, config.translation
            )
            check_report(session, report, scoped.transaction_id is None)
            return Response(status_code=204)

        return run(path, work)

    @router.delete("/{path:path}", status_code=204)
    async def delete_resource(path: str):
        """Delete a resource and everything below it."""

        def work(session: Session, scoped: IdentifierTranslator, store_path: str) -> Response:
            session.delete_node(store_path)
            return Response(status_code=204)

        return run(path, work)

    return router


def create_app(
    repository: Optional[Repository] = None,
    config: Optional[NodeGraphConfig] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        repository: Optional Repository instance (creates new if not provided)
        config: Optional configuration (defaults overridden by the environment)

    Returns:
        Configured FastAPI application
    """
    config = config or NodeGraphConfig.from_env()
    configure_logging(config)

    app = FastAPI(
        title="RDF NodeGraph API",
        description="Linked Data interface to a hierarchical node store",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.repository = repository or Repository(
        supports_references=config.translation.supports_references
    )
    app.include_router(create_ldp_router(app.state.repository, config))

    @app.get("/", tags=["Info"])
    async def root():
        """API root with basic info."""
        return {
            "name": "rdf-nodegraph",
            "version": __version__,
            "base_uri": config.base_uri,
            "docs": "/docs",
        }

    @app.get("/health", tags=["Info"])
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/stats", tags=["Info"])
    async def stats():
        """Repository statistics."""
        return app.state.repository.stats()

    return app
