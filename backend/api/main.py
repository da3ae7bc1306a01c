"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import ai, books, chapters, exports
from db import SessionLocal, init_db
from repositories.seed import seed_demo_books
from settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Request body/query/path segments that carry no field name
_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


def _error_field(loc) -> str | None:
    parts = [str(p) for p in loc if p not in _LOCATION_PREFIXES]
    return ".".join(parts) or None


def create_app() -> FastAPI:
    app = FastAPI(
        title="Book Studio API",
        description="API for planning, drafting and exporting KDP-ready books",
        version="0.1.0",
    )

    # CORS middleware for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(books.router, prefix="/api/books", tags=["books"])
    app.include_router(exports.router, prefix="/api/books", tags=["exports"])
    app.include_router(chapters.router, prefix="/api", tags=["chapters"])
    app.include_router(ai.router, prefix="/api/ai", tags=["ai"])

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """First validation issue as ``{message, field}`` with status 400."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        return JSONResponse(
            status_code=400,
            content={
                "message": first.get("msg", "Invalid request"),
                "field": _error_field(first.get("loc", ())),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    @app.on_event("startup")
    def startup_event():
        """Initialize database tables on startup and seed demo data when enabled."""
        init_db()
        if settings.SEED_DEMO_DATA:
            with SessionLocal() as session:
                seed_demo_books(session)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "ok", "service": "Book Studio API"}

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
