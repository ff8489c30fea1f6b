from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime
import logging
import os

from dotenv import load_dotenv

# Load environment variables from .env file before any module reads them
load_dotenv()

from config.logging_config import setup_logging, request_user_id
from config.database import engine, Base, test_db_connection
from config.middleware import add_cors_middleware
from shared_utils.auth import decode_token, JWT_SECRET, JWT_ALGORITHM
import models  # registers every table on Base
import profiles.router, crushes.router, conversations.router
import user_settings.router, insights.router, dashboard.router
import subscriptions.router, webhooks.router, crystal.router, media.router
from webhooks.events import event_queue
from webhooks.scheduler import webhook_retry_scheduler

from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

# ------------- Logging -------------
setup_logging()
logger = logging.getLogger(__name__)


# ------------- Lifespan -------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown"""
    logger.info("Crystal API starting up...")

    retry_enabled = os.getenv("WEBHOOK_RETRY_ENABLED", "true").lower() == "true"
    if retry_enabled:
        try:
            webhook_retry_scheduler.start()
        except Exception as e:
            logger.error(f"Failed to start Webhook Retry Scheduler: {str(e)}")

    yield

    logger.info("Crystal API shutting down...")
    if webhook_retry_scheduler.is_running:
        try:
            webhook_retry_scheduler.stop()
        except Exception as e:
            logger.error(f"Error stopping scheduler: {str(e)}")


# ------------- Create app -------------
app = FastAPI(title="Crystal.AI API", lifespan=lifespan)

# Called by external systems that carry their own identification
PUBLIC_PATHS = {
    "/",
    "/health",
    "/openapi.json",
    "/payment-webhook",
    "/n8n-chat-integration",
}


# ------------- JWT Authentication Middleware -------------
async def jwt_middleware(request: Request, call_next):
    """
    Bearer-token authentication for every non-public route.
    Decoded claims land on request.state for the get_current_user dependency.
    """
    if request.method == "OPTIONS":
        return await call_next(request)

    if request.url.path in PUBLIC_PATHS or request.url.path.startswith("/docs") or request.url.path.startswith("/redoc"):
        return await call_next(request)

    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return JSONResponse(
            status_code=401,
            content={"error": "unauthorized", "message": "Authorization token missing"}
        )

    token = auth.replace("Bearer ", "")

    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        return JSONResponse(
            status_code=401,
            content={"error": "token_expired", "message": "Access token has expired"}
        )
    except InvalidTokenError:
        return JSONResponse(
            status_code=401,
            content={"error": "invalid_token", "message": "Invalid token"}
        )

    if not payload.get("sub"):
        return JSONResponse(
            status_code=401,
            content={"error": "invalid_token", "message": "Token has no subject"}
        )

    request.state.user_id = payload.get("sub")
    request_user_id.set(request.state.user_id)
    request.state.user_email = payload.get("email")
    request.state.user_metadata = payload.get("user_metadata") or {}

    return await call_next(request)


app.middleware("http")(jwt_middleware)

# ------------- CORS + DB -------------
# CORS is added last so it wraps the auth middleware and answers preflights first
add_cors_middleware(app)
Base.metadata.create_all(bind=engine)

# ------------- Routers -------------
app.include_router(profiles.router.router)
app.include_router(crushes.router.router)
app.include_router(conversations.router.router)
app.include_router(user_settings.router.router)
app.include_router(insights.router.router)
app.include_router(dashboard.router.router)
app.include_router(subscriptions.router.router)
app.include_router(webhooks.router.router)
app.include_router(crystal.router.router)
app.include_router(media.router.router)


# ------------- Health -------------
@app.get("/health")
def health_check():
    return {
        "status": "Crystal API is healthy",
        "database": "connected" if test_db_connection() else "unavailable",
        "webhook_scheduler": "running" if webhook_retry_scheduler.is_running else "stopped",
        "pending_events": event_queue.pending(),
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }


@app.get("/")
def read_root():
    return {"message": "Crystal API is running"}
