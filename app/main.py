# app/main.py
"""
FastAPI application entry point.
create_app() wires one broadcaster, one side-effect dispatcher and the
database engine per app instance; `app` is the instance uvicorn serves.
"""

import asyncio
import os
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.database import create_tables, engine as default_engine
from app.exceptions import register_exception_handlers
from app.routers import health, notifications, visitors
from app.services.badge_service import BadgeGenerator
from app.services.broadcaster import UpdateBroadcaster
from app.services.expiry_service import run_expiry_sweep
from app.services.notification_service import SmtpNotifier
from app.services.side_effect_dispatcher import SideEffectDispatcher
from app.utils.logger import get_logger

logger = get_logger(__name__)


def create_app(
    engine: Optional[Engine] = None,
    executor: Optional[Executor] = None,
    notifier: Optional[SmtpNotifier] = None,
    badge_generator: Optional[BadgeGenerator] = None,
) -> FastAPI:
    engine = engine or default_engine
    app = FastAPI(
        title="Visitor Check-in API",
        description="Front-desk registration, email approval, release and security checkout.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.engine = engine
    app.state.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    app.state.broadcaster = UpdateBroadcaster(settings.SUBSCRIBER_QUEUE_SIZE)
    app.state.notifier = notifier or SmtpNotifier(settings)
    app.state.dispatcher = SideEffectDispatcher(
        executor=executor or ThreadPoolExecutor(max_workers=settings.SIDE_EFFECT_WORKERS,
                                                thread_name_prefix="side-effect"),
        session_factory=app.state.session_factory,
        notifier=app.state.notifier,
        badge_generator=badge_generator or BadgeGenerator(settings.UPLOAD_DIR, settings.approval_url),
        settings=settings,
    )
    app.state.expiry_task = None

    # ── CORS (front desk + dashboards on the same LAN) ──────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Request Timing Middleware ────────────────────────────────────────────
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration = round((time.time() - start) * 1000, 2)
        logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
        return response

    register_exception_handlers(app)

    # ── Routers ──────────────────────────────────────────────────────────────
    app.include_router(visitors.router, prefix=settings.API_PREFIX, tags=["Visitors"])
    app.include_router(health.router, prefix=settings.API_PREFIX, tags=["Health"])
    app.include_router(notifications.router, tags=["Email"])

    # Photos + QR codes referenced from emails
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

    # ── Startup / Shutdown ───────────────────────────────────────────────────
    @app.on_event("startup")
    async def startup():
        logger.info("🚀 Visitor backend starting up...")
        create_tables(bind=app.state.engine)
        logger.info("✅ Database tables ready")
        app.state.dispatcher.verify_transport()

        if settings.APPROVAL_EXPIRY_HOURS > 0:
            app.state.expiry_task = asyncio.create_task(run_expiry_sweep(
                app.state.session_factory,
                app.state.broadcaster,
                settings.APPROVAL_EXPIRY_HOURS,
                settings.EXPIRY_SWEEP_INTERVAL_SECONDS,
            ), name="approval-expiry")
        logger.info(f"🌐 Approval links point at {settings.BASE_URL}{settings.API_PREFIX}")

    @app.on_event("shutdown")
    async def shutdown():
        logger.info("🛑 Visitor backend shutting down...")
        if app.state.expiry_task is not None:
            app.state.expiry_task.cancel()
        app.state.dispatcher.shutdown()

    return app


app = create_app()
