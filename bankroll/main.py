from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .api import api_router
from .config import get_settings
from .db import SessionLocal, dispose_db, init_db
from .logging_config import configure_logging
from .services.recognition import UPLOADS_ROUTE
from .telegram.bot import init_bot, shutdown_bot

settings = get_settings()
configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.ticket_upload_dir.mkdir(parents=True, exist_ok=True)
    await init_db()
    await init_bot(SessionLocal)
    try:
        yield
    finally:
        await shutdown_bot()
        await dispose_db()


_docs_enabled = settings.environment.lower() != "production"
app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
    docs_url="/docs" if _docs_enabled else None,
    redoc_url="/redoc" if _docs_enabled else None,
)
app.include_router(api_router, prefix="/api")
app.mount(
    UPLOADS_ROUTE,
    StaticFiles(directory=settings.ticket_upload_dir, check_dir=False),
    name="ticket-uploads",
)


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
