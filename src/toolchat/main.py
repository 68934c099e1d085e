import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from fastapi import Cookie, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .agent import get_chat_service
from .errors import ChatError, InvalidRequestError
from .schemas import CategorySettingsBody, ChatRequestBody
from .services.category_settings import build_category_settings_service
from .services.session import COOKIE_NAME
from .settings import get_settings


def setup_server_logging(level: str = "INFO") -> logging.Logger:
    """Configure and return the application logger."""
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("toolchat")
    if logger.handlers:
        return logger

    logger.setLevel(level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = RotatingFileHandler(logs_dir / "server.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    return logger


def _cors_origins_list(origins: str) -> list[str]:
    """Parse CORS_ORIGINS into a list."""
    if not origins or origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in origins.split(",") if o.strip()]


settings = get_settings()
LOGGER = setup_server_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load MCP tools and connect category settings storage at startup; close Redis on shutdown."""
    service = get_chat_service()
    if settings.mcp_commands():
        LOGGER.info("Loading MCP tools at startup...")
        try:
            added = await service.load_mcp_tools()
            LOGGER.info("Loaded %d MCP tool(s); catalog has %d tools", added, len(service.catalog))
        except (OSError, ConnectionError, TimeoutError) as e:
            LOGGER.warning("MCP tools partially or fully unavailable: %s", e)

    service.category_settings = await build_category_settings_service()
    LOGGER.info(
        "Category settings ready (%s)",
        "redis" if service.category_settings.persistent else "in-memory",
    )

    yield

    LOGGER.info("Shutting down...")
    await service.category_settings.close()


app = FastAPI(
    title="Agent Tools Chat",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChatError)
async def handle_chat_error(request: Request, exc: ChatError) -> JSONResponse:
    if exc.status_code >= 500:
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(Exception)
async def handle_unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": f"Chat failed: {exc}"})


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check for load balancers and monitoring."""
    return {"status": "ok"}


@app.post("/api/chat")
async def chat(
    body: ChatRequestBody,
    session_token: str | None = Cookie(default=None, alias=COOKIE_NAME),
) -> JSONResponse:
    """Run one chat turn: tool rounds, sanitized answer, generated files.

    Response Format:
        {"message", "toolResults"?, "fileOutputs"?, "messagesRemaining"}
        or {"limited": true, "message", "url", "messagesRemaining": 0}
        or {"error", "code"?} with a non-2xx status
    """
    service = get_chat_service()
    outcome = await service.chat(
        body.message,
        session_token=session_token,
        enabled_categories=body.enabled_categories,
        model=body.model,
        history=[t.to_model() for t in body.history],
        files=[f.to_model() for f in body.files],
    )
    response = JSONResponse(content=outcome.body)
    if outcome.session_token:
        response.set_cookie(COOKIE_NAME, outcome.session_token, **service.sessions.cookie_options())
    return response


@app.get("/api/chat")
async def chat_status(
    session_token: str | None = Cookie(default=None, alias=COOKIE_NAME),
) -> dict[str, Any]:
    return get_chat_service().status(session_token)


@app.get("/api/tools")
async def list_tools() -> dict[str, Any]:
    return {"categories": await get_chat_service().list_tools()}


@app.get("/api/settings")
async def get_category_settings() -> dict[str, Any]:
    return {"enabled": await get_chat_service().category_settings.get_state()}


@app.put("/api/settings")
async def update_category_settings(body: CategorySettingsBody) -> dict[str, Any]:
    if body.enabled is None:
        raise InvalidRequestError('Request body must include an "enabled" object')
    state = await get_chat_service().category_settings.update(body.enabled)
    return {"success": True, "enabled": state}
