"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel

from src.api.error import register_error_handlers
from src.api.routes import payments, subscription_jobs, subscriptions
from src.depends import AsyncSessionLocal, engine, get_clock
from src.worker.subscription_jobs import SubscriptionJobsWorker

logger = logging.getLogger(__name__)


def create_app(config) -> FastAPI:
    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

        if config.SCHEDULER_ENABLED:
            worker = SubscriptionJobsWorker(
                session_factory=AsyncSessionLocal, clock=get_clock(), config=config
            )
            app.state.scheduler = worker.create_scheduler()
            app.state.scheduler.start()
        else:
            logger.info("Subscription scheduler disabled")

        yield

        if app.state.scheduler is not None:
            await app.state.scheduler.stop()
        await engine.dispose()

    app = FastAPI(
        title="Subscription Service",
        description="Subscription lifecycle, payment webhooks and reconciliation jobs",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.scheduler = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(payments.router, prefix=config.API_PREFIX)
    app.include_router(subscriptions.router, prefix=config.API_PREFIX)
    app.include_router(subscription_jobs.router, prefix=config.API_PREFIX)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
