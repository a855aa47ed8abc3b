"""
FastAPI application: the supportdesk entry point.

Endpoints:
  GET  /health                      liveness + whether AI replies are enabled
  POST /chat/message                one chat turn
  GET  /chat/history/{sessionId}    full conversation, oldest first

The store and reply generator are built once in create_app() (or the
lifespan, when not injected) and hung off app.state; handlers never reach
for module globals, so tests can hand in a fresh store per test.
"""

import logging
import time
import traceback
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from supportdesk.chat import ChatService
from supportdesk.config import get_config
from supportdesk.errors import StorageError, SupportDeskError, ValidationError
from supportdesk.reply_generator import ReplyGenerator
from supportdesk.storage.models import now_ms
from supportdesk.storage.sqlite_store import SQLiteStore
from supportdesk.validation import ErrorResponse, HealthCheckResponse

logger = logging.getLogger(__name__)

# Sentinel: "build the generator from config" as opposed to an explicit None (disabled)
_FROM_CONFIG = object()


def _setup_logging(cfg: dict):
    log_cfg = cfg.get("logging", {})
    level = getattr(logging, str(log_cfg.get("level", "INFO")).upper(), logging.INFO)
    log_file = log_cfg.get("file")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        from pathlib import Path
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def _error_response(
    status_code: int,
    message: str,
    exc: BaseException | None = None,
    dev_mode: bool = False,
) -> JSONResponse:
    details = None
    if dev_mode and exc is not None:
        details = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    body = ErrorResponse(error=message, details=details, timestamp=now_ms())
    return JSONResponse(body.to_wire(), status_code=status_code)


def _service(request: Request) -> ChatService:
    return request.app.state.chat_service


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Health check. status is 'error' when the store cannot be reached."""
    service = _service(request)
    status, message = "ok", None
    try:
        service.store.ping()
    except StorageError as e:
        logger.error("Health check: %s", e)
        status, message = "error", "Storage unavailable"

    body = HealthCheckResponse(
        status=status,
        llm_enabled=service.llm_enabled,
        timestamp=now_ms(),
        message=message,
    )
    return JSONResponse(body.to_wire())


@router.post("/chat/message")
async def chat_message(request: Request):
    """Send a customer message and get the agent's reply."""
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON in request body") from None

    response = await _service(request).handle_turn(payload)
    return JSONResponse(response.to_wire())


@router.get("/chat/history/{session_id}")
async def chat_history(session_id: str, request: Request):
    """Every message of one conversation, oldest first."""
    response = _service(request).get_history(session_id)
    return JSONResponse(response.to_wire())


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    cfg: dict | None = None,
    store: SQLiteStore | None = None,
    generator=_FROM_CONFIG,
) -> FastAPI:
    """
    Build the application.

    cfg defaults to the loaded config.yaml. A store or generator passed in is
    used as-is (generator=None disables AI replies); anything not passed in is
    built from config when the app starts.
    """
    cfg = cfg or get_config()
    dev_mode = bool(cfg.get("server", {}).get("dev_mode", False))

    def _wire(app: FastAPI):
        sqlite_store = store or SQLiteStore(cfg["storage"]["sqlite_path"])
        reply_generator = ReplyGenerator.from_config(cfg) if generator is _FROM_CONFIG else generator
        app.state.chat_service = ChatService(
            sqlite_store,
            reply_generator,
            history_limit=cfg.get("history", {}).get("limit", 10),
        )
        logger.info("Storage: SQLite=%s", sqlite_store.db_path)
        logger.info("LLM: %s", "enabled" if reply_generator else "disabled (unavailability reply)")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle."""
        _setup_logging(cfg)
        if getattr(app.state, "chat_service", None) is None:
            _wire(app)
        logger.info(
            "supportdesk started on port %s, accepting requests from %s",
            cfg["server"]["port"],
            cfg["cors"]["origin"],
        )
        yield
        logger.info("supportdesk shutting down")

    app = FastAPI(
        title="supportdesk",
        description="TechStyle Store customer support chat.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.chat_service = None
    if store is not None:
        # Injected dependencies are usable without running the lifespan
        _wire(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[cfg["cors"]["origin"]],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        t0 = time.monotonic()
        response = await call_next(request)
        logger.debug(
            "%s %s → %d in %.0fms",
            request.method, request.url.path, response.status_code,
            (time.monotonic() - t0) * 1000,
        )
        return response

    @app.exception_handler(SupportDeskError)
    async def handle_supportdesk_error(request: Request, exc: SupportDeskError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
            return _error_response(exc.status_code, "Internal server error", exc, dev_mode)
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        # Unmatched path or method both read as an unknown route
        if exc.status_code in (404, 405):
            return _error_response(404, "Not found")
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "Internal server error", exc, dev_mode)

    app.include_router(router)
    return app


app = create_app()


# ---------------------------------------------------------------------------
# Run with: python -m supportdesk.main
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    cfg = get_config()
    uvicorn.run(
        "supportdesk.main:app",
        host=cfg["server"]["host"],
        port=cfg["server"]["port"],
        reload=False,
    )
