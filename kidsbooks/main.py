# kidsbooks/main.py
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from . import config
from .account import account_router, following_router
from .catalog import catalog_router
from .catalog.google_books_service import GoogleBooksSource
from .catalog.store import BookSource, seed_sample_books
from .errors import install_error_handlers
from .identity import DemoIdentity, IdentityResolver
from .log import configure_logging
from .notifications import NotificationMatcher, NotificationScheduler
from .storage import MemStorage, Storage


logger = logging.getLogger(__name__)


def create_app(
    storage: Optional[Storage] = None,
    book_source: Optional[BookSource] = None,
    identity: Optional[IdentityResolver] = None,
    start_scheduler: Optional[bool] = None,
) -> FastAPI:
    """Build the API around ``storage`` (a fresh seeded ``MemStorage`` by default)."""
    configure_logging()

    if storage is None:
        storage = MemStorage(
            demo_username=config.demo_username(),
            demo_password=config.demo_password(),
        )
        if config.seed_sample_books():
            seed_sample_books(storage)
    if book_source is None:
        book_source = GoogleBooksSource()
    if identity is None:
        identity = DemoIdentity(config.demo_username())
    if start_scheduler is None:
        start_scheduler = config.scheduler_enabled()

    matcher = NotificationMatcher(
        storage,
        policy=config.match_policy(),
        book_source=book_source,
        ingest=config.ingest_new_releases(),
    )
    scheduler = NotificationScheduler(
        matcher.run,
        startup_delay=config.startup_delay_seconds(),
        daily_hour=config.daily_run_hour(),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting with config %s", config.summarize_runtime_config())
        if start_scheduler:
            scheduler.start()
        try:
            yield
        finally:
            if start_scheduler:
                await asyncio.to_thread(scheduler.stop)

    meta = config.metadata()
    app = FastAPI(
        title=meta["name"],
        description=meta["description"],
        version=meta["version"],
        lifespan=lifespan,
    )
    app.state.storage = storage
    app.state.book_source = book_source
    app.state.identity = identity
    app.state.matcher = matcher
    app.state.scheduler = scheduler

    install_error_handlers(app)
    app.include_router(catalog_router)
    app.include_router(account_router)
    app.include_router(following_router)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()
