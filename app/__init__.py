# =============================================================================
# app/ - FastAPI Application Package
# =============================================================================
# HTTP and WebSocket surface of the marketplace messaging service:
# - main.py: Application entry point, middleware, router mounting
# - config.py: Settings loaded from environment / .env
# - exceptions.py: Error taxonomy and JSON error handler
# - auth/: Supabase JWT verification -> UserSession
# - routers/: REST endpoints
# - websocket/: Live message feed
# =============================================================================
