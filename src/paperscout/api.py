"""FastAPI server exposing search, collections and recommendations.

Thin HTTP wrapper around PaperService. Start with:
    paperscout serve --port 8240
"""

import logging
from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from paperscout import __version__
from paperscout.config import Settings, load_settings
from paperscout.errors import LLMError, PaperNotFoundError, StorageUnavailableError
from paperscout.llm import completer_from_settings
from paperscout.service import PaperService

logger = logging.getLogger(__name__)


class FavoriteRequest(BaseModel):
    paper_id: str = Field(min_length=1)
    tags: Optional[list[str]] = None


class ToggleRequest(BaseModel):
    tags: Optional[list[str]] = None


class TagsRequest(BaseModel):
    tags: list[str]


class RatingRequest(BaseModel):
    paper_id: str = Field(min_length=1)
    rating: Literal[-1, 1]


class HistoryRequest(BaseModel):
    paper_id: str = Field(min_length=1)
    category: Optional[str] = None


class ProposalRequest(BaseModel):
    paper_ids: list[str] = Field(min_length=1)


def _build_service(settings: Optional[Settings] = None) -> PaperService:
    """Construct the service from settings, or from saved config and environment."""
    settings = settings or load_settings()
    return PaperService.from_settings(settings, completer=completer_from_settings(settings))


def get_service(request: Request) -> PaperService:
    """Get the service attached at startup or raise 503 if not ready."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service not ready.")
    return service


def create_app(
    settings: Optional[Settings] = None, service: Optional[PaperService] = None
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        settings: Settings used to build the service at startup (defaults to
            ``load_settings()``).
        service: Pre-built service (tests). When omitted, one is constructed
            from settings at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = service is None
        if owned:
            try:
                app.state.service = _build_service(settings)
                logger.info("paperscout service ready (db=%s)", app.state.service.storage.db_path)
            except (StorageUnavailableError, ValueError) as exc:
                logger.error("Failed to start service: %s", exc)
                app.state.service = None
        else:
            app.state.service = service

        yield

        if owned and app.state.service is not None:
            app.state.service.close()
        app.state.service = None

    app = FastAPI(
        title="paperscout",
        description="Research paper discovery and recommendation API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorageUnavailableError)
    async def storage_error_handler(request, exc):
        logger.error("Storage unavailable: %s", exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(PaperNotFoundError)
    async def not_found_handler(request, exc):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(LLMError)
    async def llm_error_handler(request, exc):
        logger.error("Text completion error: %s", exc)
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request, exc):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    def health(request: Request):
        ready = getattr(request.app.state, "service", None) is not None
        return {"status": "ready" if ready else "loading", "ready": ready}

    # --- Papers ---

    @app.get("/search")
    def search(
        query: str = "",
        source: Literal["arxiv", "semantic_scholar", "provider", "both"] = "both",
        limit: int = Query(default=20, ge=1, le=100),
        category: Optional[str] = None,
        service: PaperService = Depends(get_service),
    ):
        if not query.strip() and not category:
            raise HTTPException(status_code=422, detail="Query or category is required.")
        papers = service.search(query, source=source, limit=limit, category=category)
        return [p.to_dict() for p in papers]

    @app.get("/papers/{paper_id}")
    def get_paper(paper_id: str, service: PaperService = Depends(get_service)):
        return service.get_paper(paper_id).to_dict()

    @app.get("/papers/{paper_id}/citations")
    def get_citations(paper_id: str, service: PaperService = Depends(get_service)):
        graph = service.search_citations_and_references(paper_id)
        return {
            "citations": [c.to_dict() for c in graph["citations"]],
            "references": [c.to_dict() for c in graph["references"]],
        }

    # --- Recommendations ---

    @app.get("/users/{user_id}/recommendations")
    def recommendations(
        user_id: str,
        limit: int = Query(default=10, ge=1, le=100),
        service: PaperService = Depends(get_service),
    ):
        return service.recommend(user_id, limit).to_dict()

    # --- Favorites ---

    @app.get("/users/{user_id}/favorites")
    def list_favorites(
        user_id: str, tag: Optional[str] = None, service: PaperService = Depends(get_service)
    ):
        return [f.to_dict() for f in service.list_favorites(user_id, tag=tag)]

    @app.post("/users/{user_id}/favorites")
    def add_favorite(
        user_id: str, req: FavoriteRequest, service: PaperService = Depends(get_service)
    ):
        added = service.add_favorite(user_id, req.paper_id, req.tags)
        return {"success": added, "action": "added" if added else "duplicate"}

    @app.get("/users/{user_id}/favorites/{paper_id}")
    def check_favorite(user_id: str, paper_id: str, service: PaperService = Depends(get_service)):
        return {"is_favorite": service.is_favorite(user_id, paper_id)}

    @app.delete("/users/{user_id}/favorites/{paper_id}")
    def remove_favorite(user_id: str, paper_id: str, service: PaperService = Depends(get_service)):
        service.remove_favorite(user_id, paper_id)
        return {"success": True, "action": "removed"}

    @app.post("/users/{user_id}/favorites/{paper_id}/toggle")
    def toggle_favorite(
        user_id: str,
        paper_id: str,
        req: Optional[ToggleRequest] = None,
        service: PaperService = Depends(get_service),
    ):
        is_favorite = service.toggle_favorite(user_id, paper_id, req.tags if req else None)
        return {
            "success": True,
            "action": "added" if is_favorite else "removed",
            "is_favorite": is_favorite,
        }

    @app.put("/users/{user_id}/favorites/{paper_id}/tags")
    def update_tags(
        user_id: str,
        paper_id: str,
        req: TagsRequest,
        service: PaperService = Depends(get_service),
    ):
        if not service.update_tags(user_id, paper_id, req.tags):
            raise HTTPException(status_code=404, detail="Favorite not found.")
        return {"success": True}

    @app.post("/users/{user_id}/favorites/{paper_id}/tags/generate")
    def generate_tags(user_id: str, paper_id: str, service: PaperService = Depends(get_service)):
        return {"success": True, "tags": service.generate_tags(user_id, paper_id)}

    # --- Ratings and history ---

    @app.post("/users/{user_id}/ratings")
    def add_rating(user_id: str, req: RatingRequest, service: PaperService = Depends(get_service)):
        service.rate(user_id, req.paper_id, req.rating)
        return {"success": True}

    @app.get("/users/{user_id}/ratings")
    def list_ratings(user_id: str, service: PaperService = Depends(get_service)):
        return [r.to_dict() for r in service.list_ratings(user_id)]

    @app.post("/users/{user_id}/history")
    def add_history(
        user_id: str, req: HistoryRequest, service: PaperService = Depends(get_service)
    ):
        service.record_view(user_id, req.paper_id, req.category)
        return {"success": True}

    @app.get("/users/{user_id}/history")
    def list_history(
        user_id: str,
        category: Optional[str] = None,
        limit: int = Query(default=50, ge=1, le=500),
        service: PaperService = Depends(get_service),
    ):
        return [h.to_dict() for h in service.list_history(user_id, category=category, limit=limit)]

    # --- Proposals ---

    @app.post("/users/{user_id}/proposals")
    def generate_proposal(
        user_id: str, req: ProposalRequest, service: PaperService = Depends(get_service)
    ):
        return service.generate_proposal(user_id, req.paper_ids).to_dict()

    @app.get("/users/{user_id}/proposals")
    def list_proposals(user_id: str, service: PaperService = Depends(get_service)):
        return [p.to_dict() for p in service.list_proposals(user_id)]

    @app.delete("/users/{user_id}/proposals/{proposal_id}")
    def delete_proposal(
        user_id: str, proposal_id: str, service: PaperService = Depends(get_service)
    ):
        if not service.delete_proposal(user_id, proposal_id):
            raise HTTPException(status_code=404, detail="Proposal not found.")
        return {"success": True}


app = create_app()
