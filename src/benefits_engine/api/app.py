"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from benefits_engine.api.routes import (
    approvals_router,
    bookings_router,
    health_router,
    loans_router,
    notifications_router,
)
from benefits_engine.api.schemas import ErrorResponse
from benefits_engine.config import get_settings
from benefits_engine.database import dispose_db, init_db
from benefits_engine.errors import BenefitsError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Benefits Engine API",
        description="Employee benefit approvals and loan repayment ledger",
        version=get_settings().engine_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(BenefitsError)
    async def benefits_error_handler(
        request: Request, exc: BenefitsError
    ) -> JSONResponse:
        """Map service errors onto their HTTP status."""
        body = ErrorResponse(detail=exc.message, code=exc.code, context=exc.context)
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(body, exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed request bodies and parameters are invalid input."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        body = ErrorResponse(
            detail=f"{field}: {message}" if field else message,
            code="INVALID_INPUT",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=jsonable_encoder(body, exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(approvals_router, prefix="/api/v1")
    app.include_router(loans_router, prefix="/api/v1")
    app.include_router(bookings_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
