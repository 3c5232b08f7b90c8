"""
Structured logging with trace IDs for observability.
Every pipeline stage, degradation and failure is logged.
"""

import logging
import json
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional, List
from pathlib import Path
from contextlib import contextmanager
from pythonjsonlogger import jsonlogger

from config import settings


# Attributes owned by LogRecord; passing them through `extra` raises KeyError.
_RESERVED_RECORD_KEYS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

_current_trace_id: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)


class TraceLogger:
    """Structured logger with trace ID support for pipeline observability."""

    def __init__(
        self,
        name: str = "paper_rag",
        level: Optional[str] = None,
        log_file: Optional[str] = None
    ):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level or settings.log_level))

        # Handlers are attached once per named logger
        if not self.logger.handlers:
            log_file = log_file or settings.log_file
            if log_file:
                log_file_path = Path(log_file)
                log_file_path.parent.mkdir(parents=True, exist_ok=True)

                # File handler with JSON formatting
                file_handler = logging.FileHandler(log_file)
                json_formatter = jsonlogger.JsonFormatter(
                    fmt='%(asctime)s %(name)s %(levelname)s %(message)s',
                    rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
                )
                file_handler.setFormatter(json_formatter)
                self.logger.addHandler(file_handler)

            # Console handler with readable formatting
            console_handler = logging.StreamHandler()
            console_formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

    def generate_trace_id(self) -> str:
        """Generate a new trace ID."""
        return str(uuid.uuid4())

    @property
    def current_trace_id(self) -> Optional[str]:
        return _current_trace_id.get()

    @contextmanager
    def trace(self, trace_id: Optional[str] = None):
        """
        Context manager for trace ID.

        The ID is held in a context variable, so concurrently running
        queries each keep their own.
        """
        token = _current_trace_id.set(trace_id or self.generate_trace_id())
        try:
            yield _current_trace_id.get()
        finally:
            _current_trace_id.reset(token)

    def _log(self, level: str, event: str, **kwargs):
        """Internal log method with trace ID."""
        log_data = {
            "trace_id": _current_trace_id.get() or "unknown",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            **kwargs
        }
        extra = {
            key: value for key, value in log_data.items()
            if key not in _RESERVED_RECORD_KEYS
        }

        log_method = getattr(self.logger, level.lower())
        log_method(json.dumps(log_data, default=str), extra=extra)

    def retrieval_performed(
        self,
        query: str,
        candidates: List[Dict[str, Any]],
        k: int,
        **kwargs
    ):
        """Log Stage 1 vector search."""
        self._log(
            "info",
            "retrieval_performed",
            query=query,
            num_candidates=len(candidates),
            k=k,
            candidates=[
                {
                    "title": c.get("paper", {}).get("title"),
                    "score": c.get("score")
                }
                for c in candidates
            ],
            **kwargs
        )

    def rerank_performed(
        self,
        query: str,
        input_count: int,
        output_count: int,
        avg_original_score: float,
        avg_rerank_score: float,
        **kwargs
    ):
        """Log a successful Stage 2 rerank."""
        self._log(
            "info",
            "rerank_performed",
            query=query,
            input_count=input_count,
            output_count=output_count,
            avg_original_score=round(avg_original_score, 4),
            avg_rerank_score=round(avg_rerank_score, 4),
            **kwargs
        )

    def rerank_degraded(
        self,
        reason: str,
        detail: str,
        candidate_count: int,
        **kwargs
    ):
        """Log a rerank that fell back to vector search ordering."""
        self._log(
            "info" if reason == "disabled" else "warning",
            "rerank_degraded",
            reason=reason,
            detail=detail,
            candidate_count=candidate_count,
            **kwargs
        )

    def response_composed(
        self,
        response_text: str,
        num_sources: int,
        model: str,
        **kwargs
    ):
        """Log answer synthesis."""
        self._log(
            "info",
            "response_composed",
            response_length=len(response_text),
            num_sources=num_sources,
            model=model,
            **kwargs
        )

    def stage_timed(
        self,
        stage: str,
        duration_ms: float,
        **kwargs
    ):
        """Log the latency of one pipeline stage."""
        if not settings.enable_trace_logging:
            return
        self._log(
            "debug",
            "stage_timed",
            stage=stage,
            duration_ms=round(duration_ms, 2),
            **kwargs
        )

    def pipeline_completed(
        self,
        query: str,
        total_time_ms: float,
        candidate_count: int,
        final_count: int,
        reranked: bool,
        **kwargs
    ):
        """Log end-to-end query completion."""
        self._log(
            "info",
            "pipeline_completed",
            query_preview=query[:100],
            total_time_ms=round(total_time_ms, 2),
            candidate_count=candidate_count,
            final_count=final_count,
            reranked=reranked,
            **kwargs
        )

    def error_occurred(
        self,
        error_type: str,
        error_message: str,
        context: Optional[Dict] = None,
        **kwargs
    ):
        """Log error."""
        self._log(
            "error",
            "error_occurred",
            error_type=error_type,
            error_message=error_message,
            context=context or {},
            **kwargs
        )

    def debug(self, message: str, **kwargs):
        """Debug level log."""
        self._log("debug", "debug", detail=message, **kwargs)

    def info(self, message: str, **kwargs):
        """Info level log."""
        self._log("info", "info", detail=message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Warning level log."""
        self._log("warning", "warning", detail=message, **kwargs)

    def error(self, message: str, **kwargs):
        """Error level log."""
        self._log("error", "error", detail=message, **kwargs)


# Global logger instance
trace_logger = TraceLogger()
