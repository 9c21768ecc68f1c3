"""
Lead Portal API - Main Application.

FastAPI application with CORS enabled for frontend communication.

Configuration (environment / .env):
- LOG_LEVEL: root log level (default INFO)
- CORS_ORIGINS: comma-separated allowed origins (default `*`)
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from repositories.client import RepositoryError
from services.agent_service import AgentManagementError
from services.auth_service import AuthenticationError, PermissionDeniedError, RegistrationError
from services.lead_service import LeadNotFoundError, LeadUpdateError

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Lead Portal API",
    description="REST API for capturing, working and reporting on client leads",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

_origins = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthenticationError)
def _authentication_failed(request: Request, exc: AuthenticationError):
    return JSONResponse(
        status_code=401,
        content={"detail": exc.message, "reason": exc.reason.value},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(PermissionDeniedError)
def _permission_denied(request: Request, exc: PermissionDeniedError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(LeadNotFoundError)
def _lead_not_found(request: Request, exc: LeadNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(RepositoryError)
def _repository_failed(request: Request, exc: RepositoryError):
    logger.error("Backend request failed", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(status_code=502, content={"detail": "The data service rejected the request. Please try again."})


@app.exception_handler(RegistrationError)
@app.exception_handler(AgentManagementError)
@app.exception_handler(LeadUpdateError)
def _bad_request(request: Request, exc: Exception):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "lead-portal-api"
    }


@app.get("/", tags=["Root"])
def root():
    return {
        "message": "Lead Portal API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


from api.routers import agents, auth, catalog, leads, reports

app.include_router(auth.router, prefix="/api/v1", tags=["Auth"])
app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])
app.include_router(reports.router, prefix="/api/v1", tags=["Reports"])
app.include_router(agents.router, prefix="/api/v1", tags=["Agents"])
app.include_router(catalog.router, prefix="/api/v1", tags=["Services"])
