"""Traffic ledger FastAPI application entry point."""
import logging

from fastapi import FastAPI

from .api.routes import router as stats_router


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="Traffic Ledger API",
        version="0.1.0",
        description="Read-only all-time GitHub clone/view statistics",
    )

    app.include_router(stats_router)

    return app


app = create_app()
