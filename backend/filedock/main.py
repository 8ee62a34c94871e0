"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from filedock.admin.routes import router as admin_router
from filedock.config import get_settings
from filedock.db.session import get_session, init_db
from filedock.files.errors import FilesystemReadError, StoreError
from filedock.files.routes import router as files_router
from filedock.files.store import FileStore
from filedock.files.sync import DirectoryReconciler
from filedock.limiter import limiter
from filedock.users.routes import router as users_router
from filedock.users.service import ensure_admin_exists

log = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging from settings (stderr always; optional file)."""
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root = logging.getLogger("filedock")
    root.setLevel(level)
    root.handlers.clear()
    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root.addHandler(sh)
    if settings.log_file and str(settings.log_file).strip():
        try:
            fh = logging.FileHandler(settings.log_file, encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(fmt)
            root.addHandler(fh)
            root.info("Logging to file %s", settings.log_file)
        except OSError as e:
            root.warning("Could not open log file %s: %s", settings.log_file, e)
    else:
        root.debug("Logging to stderr only (no log_file set)")


_setup_logging()


async def _startup_sync(lock: asyncio.Lock) -> None:
    """Rescan storage into the catalog; a failure is logged and startup continues."""
    settings = get_settings()
    try:
        async with get_session() as session:
            reconciler = DirectoryReconciler(
                FileStore(session), settings.storage_base_path, lock=lock
            )
            await reconciler.synchronize()
    except (FilesystemReadError, StoreError) as e:
        log.error("Startup sync failed: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, bootstrap admin, prepare storage and sync it on startup."""
    settings = get_settings()
    log.info("Startup: initializing database and admin")
    if not settings.jwt_secret:
        log.warning("FILEDOCK_JWT_SECRET is empty; tokens are signed with an empty key")
    await init_db()
    async with get_session() as session:
        await ensure_admin_exists(session)
    settings.storage_base_path.mkdir(parents=True, exist_ok=True)
    log.info("Storage directory at %s", settings.storage_base_path)
    app.state.sync_lock = asyncio.Lock()
    if settings.sync_on_startup:
        await _startup_sync(app.state.sync_lock)
    log.info("Startup complete")
    yield
    log.info("Shutdown")


app = FastAPI(title="filedock API", version="0.1.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Return generic 500 without leaking stack trace or internals."""
    if isinstance(exc, HTTPException):
        raise exc
    log.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(users_router)
app.include_router(files_router)
app.include_router(admin_router)


@app.get("/health")
@limiter.exempt
def health() -> JSONResponse:
    """Health check. Exempt from rate limiting."""
    return JSONResponse(content={"status": "ok"})


def run() -> None:
    """Console entry point: serve the API with uvicorn on the configured port."""
    settings = get_settings()
    uvicorn.run("filedock.main:app", host=settings.host, port=settings.port)
