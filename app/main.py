# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Marketplace Messaging API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.exceptions import MarketplaceException, marketplace_exception_handler
from app.routers import conversations, health
from app.auth import routes as auth_routes
from app.websocket import websocket_manager
from app.websocket import routes as websocket_routes
from lib.supabase_client import SupabaseClient

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    - Startup: log configuration
    - Shutdown: close every open realtime subscription and cached client
    """
    logger.info(f"Starting Marketplace Messaging API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")

    yield

    logger.info("Shutting down Marketplace Messaging API")
    await websocket_manager.close_all()
    SupabaseClient.clear_session_clients()


# Create FastAPI application
app = FastAPI(
    title="Marketplace Messaging API",
    description="""
## Buyer/Seller Messaging for Marketplace Listings

Conversations are scoped to one listing and exactly two participants
(the listing's seller and one buyer). Starting a conversation twice
returns the same thread.

### Flow

1. **Start** - `POST /api/v1/conversations` with the listing and the other participant
2. **Send** - `POST /api/v1/conversations/{id}/messages`
3. **Inbox** - `GET /api/v1/conversations` (most recent activity first)
4. **Read** - `POST /api/v1/conversations/{id}/read`
5. **Live** - `ws://host/ws/conversations/{id}?token=...`
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Auth",
            "description": "Verify Supabase tokens and fetch the current profile",
        },
        {
            "name": "Conversations",
            "description": "Start conversations, send and read messages",
        },
        {
            "name": "WebSocket",
            "description": "Real-time message feed",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(MarketplaceException)
async def handle_marketplace_exception(request: Request, exc: MarketplaceException):
    """Handle taxonomy exceptions raised by the service layer."""
    return await marketplace_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

app.include_router(
    auth_routes.router,
    prefix="/api/v1/auth",
    tags=["Auth"]
)

app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

app.include_router(
    conversations.router,
    prefix="/api/v1/conversations",
    tags=["Conversations"]
)

app.include_router(
    websocket_routes.router,
    tags=["WebSocket"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Marketplace Messaging API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
