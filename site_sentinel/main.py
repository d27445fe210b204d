# site_sentinel/main.py
import logging
import asyncio
import httpx
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse, PlainTextResponse
import os

from .config import settings
from .state import app_state
from .storage import load_store, persist_state
from .api.endpoints import router as api_router
from .api.websocket import broadcast_metrics_periodically
from .services.auth import current_user
from .services.remediation import cancel_all_tasks
from .services.sites import seed_sites

logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manages application startup and shutdown events."""
    logger.info("Application starting up...")

    # --- Startup ---
    session, user = load_store()
    app_state.session_active = session
    app_state.user = user
    if user is None:
        current_user()
        persist_state()
        logger.info(f"No stored profile, seeded default account {settings.ADMIN_EMAIL}.")
    if not app_state.sites:
        app_state.sites = seed_sites()
    logger.info(
        f"Store loaded from {settings.STORE_FILE} (session active: {app_state.session_active}).")

    timeout = httpx.Timeout(settings.AI_REQUEST_TIMEOUT, connect=10.0)
    app_state.http_client = httpx.AsyncClient(timeout=timeout)
    logger.info("Shared HTTP client initialized.")
    if not settings.AI_API_KEY:
        logger.warning("API_KEY is not set; vulnerability scans will fail.")

    app.state.metrics_task = asyncio.create_task(
        broadcast_metrics_periodically(), name="metrics_broadcaster")

    logger.info("Site Sentinel startup complete.")
    yield  # Application runs here

    # --- Shutdown ---
    logger.info("Application shutting down...")
    if hasattr(app.state, 'metrics_task') and not app.state.metrics_task.done():
        app.state.metrics_task.cancel()
        try:
            await app.state.metrics_task
        except asyncio.CancelledError:
            logger.info("Metrics broadcaster task successfully cancelled.")
    await cancel_all_tasks()
    if app_state.http_client:
        await app_state.http_client.aclose()
        app_state.http_client = None
        logger.info("Shared HTTP client closed.")
    logger.info("Application shutdown complete.")


app = FastAPI(
    title="Site Sentinel",
    description="Website security dashboard with AI vulnerability analysis.",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(api_router)

static_dir = "static"
if os.path.isdir(static_dir):
    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    logger.info(f"Mounted static directory '{static_dir}' at '/static'")


@app.get("/", include_in_schema=False)
async def get_index_html():
    index_path = os.path.join(static_dir, "index.html")
    if os.path.exists(index_path):
        return FileResponse(index_path, media_type='text/html')
    return PlainTextResponse("Site Sentinel API is running. See /docs.", status_code=200)


@app.get("/health", status_code=200, tags=["Health"])
async def health_check(): return {"status": "ok"}
