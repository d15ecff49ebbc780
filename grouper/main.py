"""
Grouper Planner - Main Application Entry Point

FastAPI application exposing project creation with AI planning, plan retry
and bundle claiming.
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, Depends, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from . import __version__
from .database import init_database, close_database, get_database
from .database.exceptions import EntityNotFoundError
from .database.repositories import (
    BundleRepository,
    ProjectRepository,
    get_bundle_repository,
    get_project_repository,
)
from .models.api_validation import (
    ClaimBundleResponse,
    CreateProjectRequest,
    CreateProjectResponse,
    RetryPlanRequest,
    RetryPlanResponse,
)
from .services.exceptions import BundleClaimConflictError, ForbiddenError, ServiceError
from .services.identity import CallerIdentity, IdentityProvider, get_identity_provider, parse_bearer_token
from .services.plan_retry import PlanRetryService
from .services.project_creation import ProjectCreationService, resolve_trace_id

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    logger.info(f"Starting {settings.app_name}...")

    try:
        if await init_database():
            logger.info("Database initialized")
        else:
            logger.warning("Database not configured or failed to initialize")
    except Exception as e:
        logger.warning(f"Database init failed: {e}")

    if settings.use_ai_stub:
        logger.info("Plan generation running in stub mode")
    elif not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; plan generation will fail with AI_CALL_FAILED")

    yield

    logger.info("Shutting down...")
    await close_database()


app = FastAPI(
    title=settings.app_name,
    description="Group project planning with AI-generated task bundles",
    version=__version__,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== DEPENDENCIES ====================

def get_identity() -> IdentityProvider:
    return get_identity_provider()


async def get_caller(
    authorization: Optional[str] = Header(None),
    identity: IdentityProvider = Depends(get_identity),
) -> CallerIdentity:
    """Resolve the bearer token to a caller, or raise AuthenticationError (401)."""
    token = parse_bearer_token(authorization)
    return await identity.resolve(token)


def get_creation_service() -> ProjectCreationService:
    return ProjectCreationService()


def get_retry_service() -> PlanRetryService:
    return PlanRetryService()


def get_projects() -> ProjectRepository:
    return get_project_repository()


def get_bundles() -> BundleRepository:
    return get_bundle_repository()


# ==================== ERROR HANDLERS ====================

@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc), "trace_id": request.headers.get("x-request-id")},
    )


@app.exception_handler(EntityNotFoundError)
async def not_found_exception_handler(request: Request, exc: EntityNotFoundError):
    return JSONResponse(
        status_code=404,
        content={"error": str(exc), "trace_id": request.headers.get("x-request-id")},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc),
            "trace_id": request.headers.get("x-request-id"),
        },
    )


# ==================== ROUTES ====================

@app.get("/")
async def root():
    """Root endpoint - service info."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": __version__,
    }


@app.get("/health")
async def health_check():
    """Detailed health check endpoint."""
    db_health = {"status": "not_configured"}
    try:
        db = get_database()
        db_health = await db.health_check()
    except Exception as e:
        db_health = {"status": "error", "error": str(e)}

    return {
        "status": "healthy" if db_health.get("status") == "healthy" else "degraded",
        "timestamp": datetime.now().isoformat(),
        "services": {
            "database": db_health,
            "openai": bool(settings.openai_api_key),
            "stub_mode": settings.use_ai_stub,
        },
    }


@app.get("/api/ping")
async def ping(x_request_id: Optional[str] = Header(None)):
    """Connectivity check; no auth, no store access."""
    return {"ok": True, "trace_id": resolve_trace_id(None, x_request_id), "step": "ping"}


@app.post("/api/projects", response_model=CreateProjectResponse)
async def create_project(
    body: CreateProjectRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: ProjectCreationService = Depends(get_creation_service),
    x_request_id: Optional[str] = Header(None),
):
    """Create a project and generate its plan. Generation failures still return the project id."""
    trace_id = resolve_trace_id(body.trace_id, x_request_id)
    logger.info(f"create-with-ai: start trace={trace_id} user_id={caller.user_id}")
    return await service.create_project(body, caller, trace_id)


@app.post("/api/projects/retry-plan", response_model=RetryPlanResponse)
async def retry_plan(
    body: RetryPlanRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: PlanRetryService = Depends(get_retry_service),
    x_request_id: Optional[str] = Header(None),
):
    """Re-run plan generation for a project the caller belongs to."""
    trace_id = resolve_trace_id(None, x_request_id)
    return await service.retry_plan(body, caller, trace_id)


@app.post("/api/projects/{project_id}/bundles/{bundle_id}/claim", response_model=ClaimBundleResponse)
async def claim_bundle(
    project_id: int,
    bundle_id: int,
    caller: CallerIdentity = Depends(get_caller),
    projects: ProjectRepository = Depends(get_projects),
    bundles: BundleRepository = Depends(get_bundles),
):
    """Claim an unclaimed bundle for the caller and take its unowned tasks."""
    member = await projects.get_member(project_id, caller.user_id)
    if member is None:
        raise ForbiddenError("Project membership not found")

    bundle, tasks_assigned = await bundles.claim_bundle(project_id, bundle_id, member.id)
    if bundle is None:
        raise BundleClaimConflictError(f"Bundle {bundle_id} is already claimed")

    return ClaimBundleResponse(
        bundle_id=bundle.id,
        label=bundle.label,
        claimed_by_member_id=member.id,
        tasks_assigned=tasks_assigned,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "grouper.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
