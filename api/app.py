"""
FastAPI application for the paper question-answering service.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import router, VERSION
from config import Settings, settings as default_settings
from models.schemas import ErrorResponse
from observability import trace_logger
from rag import BatchTooLargeError, PipelineError, RAGPipeline


def _error_response(request: Request, status_code: int, error: str, message: str) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        path=request.url.path
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True)
    )


def create_app(
    pipeline: Optional[RAGPipeline] = None,
    settings: Settings = default_settings
) -> FastAPI:
    """
    Build the application.

    Args:
        pipeline: Prebuilt pipeline; when omitted one is built from settings
            at startup
        settings: Application settings
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan event handler for startup/shutdown."""
        trace_logger.info("Starting Paper RAG API")
        if pipeline is None:
            settings.validate_api_keys()
            app.state.pipeline = RAGPipeline.from_settings(settings)
        else:
            app.state.pipeline = pipeline

        yield

        trace_logger.info("Shutting down Paper RAG API")

    app = FastAPI(
        title="Paper RAG",
        description="Question answering over JMLR papers with two-stage retrieval",
        version=VERSION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(request, 400, "ValidationError", str(exc.errors()))

    @app.exception_handler(BatchTooLargeError)
    async def batch_too_large_handler(request: Request, exc: BatchTooLargeError):
        return _error_response(request, 400, "BatchTooLargeError", str(exc))

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError):
        trace_logger.error_occurred(
            error_type=type(exc).__name__,
            error_message=str(exc),
            context={"path": request.url.path}
        )
        return _error_response(request, 500, type(exc).__name__, str(exc))

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Paper RAG",
            "version": VERSION,
            "status": "operational"
        }

    return app
