import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .api import api_router
from .core.config import get_settings
from .core.logging import configure_logging
from .db.session import async_engine, background_session
from .features.photos import photo_storage_root, sweep_orphan_photos

settings = get_settings()
logger = logging.getLogger(__name__)


async def _orphan_photo_sweeper_loop() -> None:
    while True:
        try:
            async with background_session() as session:
                removed = await sweep_orphan_photos(session)
            if removed:
                logger.info("Orphan photo sweep removed %d file(s)", len(removed))
        except Exception:
            logger.warning("Orphan photo sweep failed", exc_info=True)
        interval = max(1, settings.photo_orphan_sweep_interval_seconds)
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    sweeper_task: asyncio.Task[None] | None = None
    if settings.photo_orphan_sweep_enabled:
        sweeper_task = asyncio.create_task(_orphan_photo_sweeper_loop())
    try:
        yield
    finally:
        if sweeper_task is not None:
            sweeper_task.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper_task
        await async_engine.dispose()


app = FastAPI(title="PetSpot API", docs_url="/api/docs", lifespan=lifespan)
app.include_router(api_router)
app.mount(
    settings.photo_public_prefix.rstrip("/") or "/images",
    StaticFiles(directory=str(photo_storage_root())),
    name="images",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def read_root() -> dict:
    return {"status": "ok", "service": "petspot"}


@app.get("/health")
async def health_check() -> dict:
    return {"healthy": True}
