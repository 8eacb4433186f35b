"""FastAPI application for UIO9.

Exposes the search engine over HTTP:

- ``GET /api/search``: API information
- ``POST /api/search``: run a search and return correlated results
- ``GET /health``: liveness check

One admission governor and one HTTP client are shared by every request the
application serves, so the rate and concurrency limits hold across requests.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from uio9.core.config import Config, get_config
from uio9.core.data_models import Query
from uio9.core.errors import EmptyQueryError
from uio9.core.governor import AdmissionGovernor
from uio9.core.http_client import AsyncHTTPClient
from uio9.core.logging_setup import AuditLogger, configure_comprehensive_logging
from uio9.core.orchestrator import SearchOrchestrator
from uio9.sources.registry import SourceRegistry, build_default_registry
from uio9.utils.validators import should_block_request

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

RegistryFactory = Callable[[AsyncHTTPClient, AdmissionGovernor, Any], SourceRegistry]


# Pydantic models
class SearchRequest(BaseModel):
    """Search request model; at least one field is required."""

    name: Optional[str] = Field(None, description="Full name")
    username: Optional[str] = Field(None, description="Username or handle")
    email: Optional[str] = Field(None, description="Email address")
    phone: Optional[str] = Field(None, description="Phone number")
    location: Optional[str] = Field(None, description="City, region or country")
    timeout: Optional[float] = Field(None, gt=0, le=300, description="Search deadline (s)")


class SearchMetadata(BaseModel):
    """Metadata returned with search results."""

    timestamp: datetime
    query: Dict[str, Any]
    totalResults: int
    timedOut: bool
    failedSources: List[str]


class SearchResponse(BaseModel):
    """Search response model."""

    success: bool
    results: List[Dict[str, Any]]
    metadata: SearchMetadata


def create_app(
    config: Optional[Config] = None,
    registry_factory: Optional[RegistryFactory] = None,
    *,
    configure_logs: bool = True,
) -> FastAPI:
    """Build the API application.

    Args:
        config: Configuration (defaults to the global config)
        registry_factory: Builds the source registry from the shared client,
            governor and config (defaults to the built-in sources)
        configure_logs: Configure logging handlers at startup

    Returns:
        FastAPI application
    """
    config = config or get_config()
    registry_factory = registry_factory or build_default_registry

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup and shutdown events."""
        # === STARTUP ===
        if configure_logs:
            log_dir = Path(str(config.get("logging.directory", "logs")))
            log_level = getattr(
                logging, str(config.get("logging.level", "INFO")).upper(), logging.INFO
            )
            audit_logger, _ = configure_comprehensive_logging(
                log_dir=log_dir,
                level=log_level,
                use_json=bool(config.get("logging.json_format", False)),
                console_output=True,
            )
        else:
            audit_logger = AuditLogger()

        governor = AdmissionGovernor.from_config(config)
        async with AsyncHTTPClient(
            timeout=float(config.get("search.http_timeout", 10)),
            user_agent=config.get("search.user_agent"),
        ) as client:
            registry = registry_factory(client, governor, config)
            app.state.audit_logger = audit_logger
            app.state.governor = governor
            app.state.orchestrator = SearchOrchestrator.from_config(registry, config)
            logger.info("UIO9 API ready with %d sources", len(registry))

            yield  # Application runs here

        # === SHUTDOWN ===
        logger.info("UIO9 API shutting down (governor stats: %s)", governor.get_stats())

    app = FastAPI(
        title="UIO9 OSINT API",
        description="Multi-source identity search and correlation API",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Health check endpoint
    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        governor: Optional[AdmissionGovernor] = getattr(request.app.state, "governor", None)
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": API_VERSION,
            "governor": governor.snapshot().to_dict() if governor else None,
        }

    @app.get("/api/search")
    async def search_info():
        """Describe the search API."""
        return {
            "message": "UIO9 OSINT Search API",
            "version": API_VERSION,
            "endpoints": {
                "POST": "/api/search - Perform OSINT search",
                "GET": "/api/search - API information",
            },
            "limits": {
                "requests_per_minute": config.get("governor.requests_per_minute", 30),
                "max_concurrent": config.get("governor.max_concurrent", 2),
            },
        }

    @app.post("/api/search", response_model=SearchResponse)
    async def search(body: SearchRequest, request: Request):
        """Perform OSINT search."""
        query = Query.from_dict(body.model_dump(exclude={"timeout"}))
        if query.is_empty:
            raise HTTPException(status_code=400, detail=str(EmptyQueryError()))

        if should_block_request(str(request.url), json.dumps(query.to_dict())):
            logger.warning("Blocked request to %s", request.url.path)
            raise HTTPException(status_code=403, detail="Request blocked by security system")

        orchestrator: SearchOrchestrator = request.app.state.orchestrator
        try:
            report = await orchestrator.search_with_report(query, timeout=body.timeout)
        except EmptyQueryError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            logger.error("Search error: %s", e, exc_info=True)
            raise HTTPException(status_code=500, detail="Search failed. Please try again later.")

        request.app.state.audit_logger.log_search(
            client_id=request.client.host if request.client else "unknown",
            attributes=[attr.value for attr in query.present_attributes()],
            results_count=len(report.results),
            timed_out=report.timed_out,
            failed_sources=report.failed_sources,
        )

        return SearchResponse(
            success=True,
            results=[result.to_dict() for result in report.results],
            metadata=SearchMetadata(
                timestamp=datetime.now(timezone.utc),
                query=query.to_dict(),
                totalResults=len(report.results),
                timedOut=report.timed_out,
                failedSources=report.failed_sources,
            ),
        )

    return app


app = create_app()
