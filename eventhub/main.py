import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from eventhub.config import get_settings
from eventhub.database import Database
from eventhub.errors import EventHubError, InternalError, ValidationError
from eventhub.rate_limit import limiter
from eventhub.routers import auth, categories, events, locations, tickets

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the storage client once at startup and close it on shutdown."""
    database = Database.from_settings(get_settings())
    database.create_all()
    app.state.database = database
    try:
        yield
    finally:
        database.dispose()


# Initialize FastAPI app
app = FastAPI(
    title="EventHub",
    description="REST API for publishing events and selling tickets",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ============== Global Error Handlers ==============

def _error_response(error: EventHubError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.kind, "detail": error.message},
    )


@app.exception_handler(EventHubError)
async def eventhub_error_handler(request: Request, exc: EventHubError):
    """Business-rule failures: stable kind plus a display message."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s", exc, request.method, request.url.path)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return a consistent JSON format for validation errors."""
    errors = []
    for err in exc.errors():
        field = " -> ".join(str(loc) for loc in err["loc"] if loc != "body")
        errors.append(f"{field}: {err['msg']}" if field else err["msg"])
    return _error_response(ValidationError("; ".join(errors)))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions: log full traceback, return safe message."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(InternalError())


# API routers (JSON endpoints, prefixed with /api)
api_prefix = "/api"
app.include_router(auth.router, prefix=api_prefix)
app.include_router(events.router, prefix=api_prefix)
app.include_router(categories.router, prefix=api_prefix)
app.include_router(locations.router, prefix=api_prefix)
app.include_router(tickets.router, prefix=api_prefix)


# ============== CORS Middleware ==============
_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    """Root endpoint: redirect to the API docs."""
    return RedirectResponse(url="/docs")


@app.get("/health")
def health_check(request: Request):
    """Health check endpoint: verifies DB connectivity."""
    checks = {"db": "ok"}
    status = "healthy"

    try:
        request.app.state.database.ping()
    except Exception as e:
        logger.warning("Health check failed: %s", e)
        checks["db"] = "unavailable"
        status = "unhealthy"

    code = 200 if status == "healthy" else 503
    return JSONResponse(status_code=code, content={"status": status, "checks": checks})
