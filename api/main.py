"""FastAPI backend for the housing society app.

Run with: uvicorn api.main:app --reload --port 8000

Endpoints:
- /api/health, /api/ready, /api/live - Health checks
- /api/auth/* - Signup, login, current profile
- /api/sheets-sync - Members and bills from the society sheet
- /api/validate-sheet-email - Membership check for signup
- /api/manage-user-role - Manager-only role management
- /api/messages/* - Direct messages between members
- /api/society-settings - Society details (managers edit)
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from api.database import init_db
from api.routes import (
    auth_routes,
    health,
    messages,
    sheets_sync,
    society_settings,
    user_roles,
    validate_email,
)
from core.config import get_config
from core.logging_config import LogContext, generate_request_id, setup_logging
from services.feed_client import FeedClient
from services.membership import MembershipValidator, client_ip_from_headers

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a request ID to each request.

    - Reuses the client's X-Request-ID or generates one
    - Sets it and the client IP in the logging context for the duration of the request
    - Adds X-Request-ID header to responses
    """
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or generate_request_id()

        request.state.request_id = request_id

        with LogContext(request_id=request_id, client_ip=client_ip_from_headers(request.headers)):
            response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    setup_logging(level=config.log_level, format_type=config.log_format)

    init_db()

    # Process-wide feed client, cache and rate limiter
    app.state.feed_client = FeedClient.from_config(config.feed)
    app.state.validator = MembershipValidator.from_config(config)

    feed_errors = config.feed.validate()
    if feed_errors:
        logger.warning(f"Member feed not configured: {'; '.join(feed_errors)}")

    logger.info("Society API started")
    yield


app = FastAPI(
    title="Society Desk",
    description="Housing society members, maintenance bills and roles",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

app.add_middleware(RequestIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().cors.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-request-id"],
    expose_headers=["X-Request-ID"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as {"error": message}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(auth_routes.router)
app.include_router(sheets_sync.router)
app.include_router(validate_email.router)
app.include_router(user_roles.router)
app.include_router(messages.router)
app.include_router(society_settings.router)
