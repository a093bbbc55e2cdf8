"""
Observability Module - Logging, Metrics, and Health

Provides:
- Structured JSON logging with request IDs
- Request/response logging middleware
- Metrics collection (request latency, logins, mutations)
- Health check utilities

Configuration:
- TRADEBARRIERS_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- TRADEBARRIERS_LOG_FORMAT: json, text (default: json in production)
- TRADEBARRIERS_PRODUCTION: Enable production mode

Usage:
    from tradebarriers.observability import get_logger

    logger = get_logger(__name__)
    logger.info("Agreement updated", agreement_id=agreement.id, status=agreement.status.value)
"""

import json
import logging
import os
import sys
import time
import uuid
from collections import deque
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

# Context variables for request tracking
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

# LogRecord attributes that are not user-supplied fields
_RESERVED_RECORD_KEYS = frozenset({
    "name", "msg", "args", "created", "levelname", "levelno",
    "pathname", "filename", "module", "lineno", "funcName",
    "exc_info", "exc_text", "stack_info", "message", "msecs",
    "relativeCreated", "thread", "threadName", "processName",
    "process", "taskName",
})


# ============================================================
# CONFIGURATION
# ============================================================

def is_production() -> bool:
    return os.environ.get("TRADEBARRIERS_PRODUCTION", "").lower() in ("1", "true", "yes")


def _get_log_level() -> int:
    level_str = os.environ.get("TRADEBARRIERS_LOG_LEVEL", "INFO").upper()
    return logging.getLevelName(level_str) if level_str in (
        "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"
    ) else logging.INFO


def _use_json_logging() -> bool:
    format_str = os.environ.get("TRADEBARRIERS_LOG_FORMAT", "").lower()
    if format_str == "json":
        return True
    if format_str == "text":
        return False
    return is_production()


# ============================================================
# STRUCTURED LOGGING
# ============================================================

def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Request context plus the keyword fields passed to ContextLogger."""
    fields: Dict[str, Any] = {}
    if request_id_var.get():
        fields["request_id"] = request_id_var.get()
    if user_id_var.get():
        fields["user_id"] = user_id_var.get()
    for key, value in vars(record).items():
        if key not in _RESERVED_RECORD_KEYS and not key.startswith("_") and value is not None:
            fields[key] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line:

        {"timestamp": "...", "level": "INFO", "logger": "tradebarriers.core.service",
         "message": "Agreement created", "request_id": "abc12345", "agreement_id": "..."}

    Values that are not JSON-serializable are logged with str().
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_fields(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line output for development, fields appended as key=value."""

    def format(self, record: logging.LogRecord) -> str:
        fields = _record_fields(record)
        request_id = fields.pop("request_id", "")
        fields.pop("user_id", None)

        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{stamp} {record.levelname:<7} {record.name}: {record.getMessage()}"
        if request_id:
            line = f"[{request_id}] {line}"
        if fields:
            line += "  " + " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextLogger(logging.LoggerAdapter):
    """
    LoggerAdapter whose keyword arguments become structured fields:

        logger.info("Theme renamed", theme_id=theme.id, old=old_name, new=new_name)
    """

    _PASSTHROUGH = ("exc_info", "stack_info", "stacklevel", "extra")

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in self._PASSTHROUGH}
        kwargs["extra"] = {**kwargs.get("extra", {}), **fields}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name), {})


def setup_logging() -> None:
    """Install a single stdout handler on the root logger. Idempotent."""
    level = _get_log_level()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if _use_json_logging() else TextFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for noisy in ("uvicorn.access", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ============================================================
# REQUEST CONTEXT MIDDLEWARE
# ============================================================

_request_logger = get_logger("tradebarriers.request")


def _resolve_user_id(request: Request) -> Optional[str]:
    from tradebarriers.web.auth import token_from_request

    token = token_from_request(request)
    auth = getattr(request.app.state, "auth", None)
    if not token or auth is None:
        return None
    return auth.subject(token)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id (from X-Request-ID or generated) and the caller's
    user id to the logging context, logs one line per request with its
    duration, and feeds the request metrics.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request_token = request_id_var.set(request_id)
        user_token = user_id_var.set(_resolve_user_id(request) or "")
        route = f"{request.method} {request.url.path}"
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            elapsed = (time.perf_counter() - started) * 1000
            _request_logger.exception(f"{route} -> 500", status_code=500, duration_ms=round(elapsed, 2))
            get_metrics().record_request(elapsed, success=False)
            raise
        else:
            elapsed = (time.perf_counter() - started) * 1000
            status = response.status_code
            _request_logger.log(
                logging.WARNING if status >= 400 else logging.INFO,
                f"{route} -> {status}",
                status_code=status,
                duration_ms=round(elapsed, 2),
            )
            get_metrics().record_request(elapsed, success=status < 500)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(request_token)
            user_id_var.reset(user_token)


# ============================================================
# METRICS
# ============================================================

COUNTERS = (
    "requests_total",
    "requests_failed",
    "login_attempts",
    "login_failures",
    "agreement_mutations",
    "theme_mutations",
)


def _percentile(samples: list, p: float) -> Optional[float]:
    if not samples:
        return None
    ordered = sorted(samples)
    return round(ordered[min(int(len(ordered) * p), len(ordered) - 1)], 2)


@dataclass
class MetricsCollector:
    """
    Process-local counters and a bounded latency sample, served on /metrics.
    """

    counters: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(COUNTERS, 0))
    latencies_ms: deque = field(default_factory=lambda: deque(maxlen=1000))
    _lock: Lock = field(default_factory=Lock, repr=False)

    def _incr(self, *names: str) -> None:
        with self._lock:
            for name in names:
                self.counters[name] += 1

    def record_request(self, latency_ms: float, success: bool) -> None:
        self._incr("requests_total", *(() if success else ("requests_failed",)))
        with self._lock:
            self.latencies_ms.append(latency_ms)

    def record_login(self, success: bool) -> None:
        self._incr("login_attempts", *(() if success else ("login_failures",)))

    def record_mutation(self, kind: str) -> None:
        """kind is "agreement" or "theme"."""
        self._incr("theme_mutations" if kind == "theme" else "agreement_mutations")

    def reset(self) -> None:
        with self._lock:
            self.counters = dict.fromkeys(COUNTERS, 0)
            self.latencies_ms.clear()

    def get_summary(self) -> Dict[str, Any]:
        with self._lock:
            summary: Dict[str, Any] = dict(self.counters)
            samples = list(self.latencies_ms)
        for label, p in (("p50", 0.5), ("p95", 0.95), ("p99", 0.99)):
            summary[f"request_latency_{label}_ms"] = _percentile(samples, p)
        return summary


_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    return _metrics


# ============================================================
# HEALTH CHECKS
# ============================================================

@dataclass
class HealthStatus:
    healthy: bool
    checks: Dict[str, Dict[str, Any]]
    duration_ms: float


def _check_store(store) -> Dict[str, Any]:
    try:
        if not store.ping():
            return {"status": "unhealthy", "backend": type(store).__name__, "version": store.version}
        return {
            "status": "healthy",
            "backend": type(store).__name__,
            "version": store.version,
            "agreement_count": len(store.list_agreements()),
        }
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


def check_health(store=None, auth=None) -> HealthStatus:
    """
    Liveness plus, when given, store reachability and the auth backend in use.

    The result is unhealthy if any check reports "unhealthy".
    """
    started = time.perf_counter()
    checks: Dict[str, Dict[str, Any]] = {"liveness": {"status": "healthy"}}

    if store is not None:
        checks["store"] = _check_store(store)
    if auth is not None:
        checks["auth"] = {"status": "healthy", "backend": auth.name}

    return HealthStatus(
        healthy=all(check["status"] == "healthy" for check in checks.values()),
        checks=checks,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
