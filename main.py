"""
FastAPI application entry point.

This module sets up the FastAPI application with all middleware,
routers, and configuration.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from routers import auth, goals, tree, plans, achievements
from core.config import Settings, settings
from core.database import check_db_connection, init_db
from core.logging import setup_logging
from core.exceptions import APIException
from core.security import TokenService
from core.security_headers import SecurityHeadersMiddleware
from core.session_gate import SessionGateMiddleware
import logging
import time

# Setup logging first
setup_logging(settings)
logger = logging.getLogger(__name__)


def _error_body(message: str, error_code: str) -> dict:
    return {"success": False, "message": message, "errorCode": error_code}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables on startup."""
    logger.info("Starting Growth Tree API...")
    init_db()
    logger.info("Database tables initialized")
    yield
    logger.info("Shutting down Growth Tree API...")


def create_app(config: Settings = settings) -> FastAPI:
    """Build the application around an explicitly constructed TokenService."""
    token_service = TokenService(config)

    app = FastAPI(
        title="Growth Tree API",
        description="Goals, daily plans and achievements",
        version="1.0.0",
        docs_url="/docs" if config.DEBUG else None,
        redoc_url="/redoc" if config.DEBUG else None,
        lifespan=lifespan,
    )
    app.state.token_service = token_service

    # Innermost first: the gate runs after CORS and security headers
    app.add_middleware(
        SessionGateMiddleware,
        token_service=token_service,
        login_path=config.LOGIN_PATH,
        protected_prefixes=config.protected_prefixes,
    )
    app.add_middleware(SecurityHeadersMiddleware, enforce_https=config.is_production)

    # CORS middleware
    # Production: set CORS_ORIGINS env var (comma-separated)
    # Development: localhost origins
    if config.CORS_ORIGINS:
        allowed_origins = [origin.strip() for origin in config.CORS_ORIGINS.split(",")]
    else:
        allowed_origins = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        # Session cookie must travel with cross-origin requests from the web app
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests with timing information."""
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={
                    "extra_fields": {
                        "method": request.method,
                        "path": request.url.path,
                        "error": str(e),
                    }
                }
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            f"Response: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "process_time_ms": round(process_time * 1000, 2),
                }
            }
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail, exc.error_code or "ERROR"),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"Invalid request: {location} {first.get('msg', '')}".strip()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(message, "INVALID_REQUEST"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        error_code = "NOT_FOUND" if exc.status_code == status.HTTP_404_NOT_FOUND else "HTTP_ERROR"
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail), error_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors."""
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                }
            }
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("Internal server error", "INTERNAL_ERROR"),
        )

    @app.get("/health")
    async def health():
        """
        Simple health check for load balancers and uptime monitors.

        Returns:
            - 200: Core systems operational
            - 503: Database unavailable
        """
        if not check_db_connection():
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "unhealthy",
                    "database": "unavailable",
                }
            )

        return {
            "status": "healthy",
            "timestamp": time.time(),
        }

    @app.get("/ping")
    async def ping():
        """
        Minimal ping endpoint for uptime monitors.
        No dependencies checked - just confirms the API is responding.
        """
        return {"pong": True}

    # Include routers
    app.include_router(auth.router)
    app.include_router(goals.router)
    app.include_router(tree.router)
    app.include_router(plans.router)
    app.include_router(achievements.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_RELOAD,
    )
