"""FastAPI application setup, error handlers and static map pages for SwapMap."""

import contextlib
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Receive, Scope, Send

from .api import router as api_router
from .config import Settings, settings as default_settings
from .errors import SwapError
from .service import SwapService
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="app/main")

_STATIC_DIR = Path(__file__).resolve().parent.parent / "static"
_MAP_PAGE = _STATIC_DIR / "map_view.html"


class ApiCORSMiddleware:
    """CORSMiddleware applied to `/api` paths only; other paths pass straight through."""

    def __init__(self, app: ASGIApp, prefix: str = "/api", **cors_options) -> None:
        self.app = app
        self.prefix = prefix
        self.cors = CORSMiddleware(app, **cors_options)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        path = scope.get("path", "")
        if scope["type"] == "http" and (path == self.prefix or path.startswith(self.prefix + "/")):
            await self.cors(scope, receive, send)
        else:
            await self.app(scope, receive, send)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(exc: RequestValidationError) -> str:
    """Collapse pydantic errors into one readable line."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "Invalid request: " + "; ".join(parts)


def _register_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(SwapError)
    async def swap_error_handler(request: Request, exc: SwapError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
            message = exc.message if settings.is_development else exc.public_message
        else:
            message = exc.message
        return _error(exc.status_code, message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error(400, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        message = f"{type(exc).__name__}: {exc}" if settings.is_development else "Internal server error"
        return _error(500, message)


def create_app(settings: Settings | None = None, service: SwapService | None = None) -> FastAPI:
    """Build the application; `service` defaults to one wired from `settings`."""
    settings = settings or default_settings
    service = service or SwapService.from_settings(settings)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application startup: starting station service")
        await app.state.service.start()
        yield
        logger.info("Application shutdown: stopping station service")
        await app.state.service.stop()

    app = FastAPI(title="SwapMap", version="1.0.0", lifespan=lifespan)
    app.state.service = service
    app.state.settings = settings

    app.add_middleware(
        ApiCORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "manufacture_id", "sticker_type"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["Content-Security-Policy"] = "frame-ancestors *"
        return response

    _register_error_handlers(app, settings)

    app.include_router(api_router)

    @app.get("/health", tags=["Infrastructure"])
    async def health():
        """Service, supplier and poller status."""
        return app.state.service.status()

    if _STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=_STATIC_DIR), name="static")

    @app.get("/", include_in_schema=False)
    @app.get("/map", include_in_schema=False)
    def serve_map():
        """Serve the map page."""
        return FileResponse(_MAP_PAGE)

    # Sticker QR codes link straight to /<sticker_id>; the page reads the id from the path.
    @app.get("/{sticker_id}", include_in_schema=False)
    def serve_sticker(sticker_id: str):
        """Serve the map page with the scan view for a sticker id."""
        return FileResponse(_MAP_PAGE)

    return app


app = create_app()
