"""alertfiles - FastAPI application that keeps one repository file per alert."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request

from alertfiles.api.webhook import router as webhook_router
from alertfiles.config import Settings, get_settings
from alertfiles.services.debounce import DebounceQueue
from alertfiles.services.reconciler import ContentReconciler
from alertfiles.stores.base import BaseStore
from alertfiles.stores.github import GitHubStore
from alertfiles.strategies import create_strategy

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> BaseStore:
    """Create the GitHub store for the configured repository."""
    return GitHubStore(
        settings.target_repo,
        token=settings.github_token,
        branch=settings.branch,
        api_url=settings.github_api_url,
        timeout_s=settings.remote_timeout,
    )


def create_app(settings: Optional[Settings] = None, store: Optional[BaseStore] = None) -> FastAPI:
    """Create the application.

    ``settings`` and ``store`` default to the environment configuration and a
    GitHub store; tests pass their own.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        cfg = settings or get_settings()

        # Configure logging level
        logging.getLogger().setLevel(cfg.log_level.upper())
        logger.info("Starting alertfiles")

        repo = cfg.target_repo
        remote = store or create_store(cfg)
        reconciler = ContentReconciler(
            remote,
            create_strategy(cfg),
            repo,
            cfg.filename,
            cfg.commit_metadata,
            dry_run=cfg.dry_run,
            create_on_resolve=cfg.create_on_resolve,
        )
        queue = DebounceQueue(
            reconciler.reconcile,
            cfg.debounce_delay,
            handle_timeout=cfg.handle_timeout,
            shutdown_grace=cfg.shutdown_grace,
        )
        queue.start()

        app.state.settings = cfg
        app.state.queue = queue
        logger.info(
            f"alertfiles started (repo: {repo.full_name}, dir: {repo.dir!r}, "
            f"engine: {cfg.engine}, dry run: {cfg.dry_run})"
        )

        yield

        # Cleanup on shutdown
        await queue.shutdown()
        await remote.close()
        app.state.queue = None
        logger.info("alertfiles stopped")

    app = FastAPI(
        title="alertfiles",
        description="Alertmanager receiver that creates and updates repository files from alerts",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.include_router(webhook_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check(request: Request) -> dict[str, Any]:
        """Health check endpoint."""
        queue: Optional[DebounceQueue] = getattr(request.app.state, "queue", None)
        if queue is None:
            return {"status": "starting"}
        return {"status": "healthy", "pending": len(queue), "in_flight": queue.in_flight}

    # Pending alerts in the debounce queue
    @app.get("/api/pending")
    async def list_pending(request: Request) -> dict[str, list[dict[str, Any]]]:
        queue: Optional[DebounceQueue] = getattr(request.app.state, "queue", None)
        return {"pending": queue.pending() if queue else []}

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "alertfiles.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    run()
