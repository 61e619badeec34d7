"""Hope Bridge Operations API — FastAPI Application."""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging

from hopebridge.config import settings
from hopebridge.database import AsyncSessionLocal, Base, async_engine
from hopebridge.services.notification_service import NotificationService, run_notification_sweep

import hopebridge.models  # noqa: F401  (registers tables on Base.metadata)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def run_task_notification_sweep():
    """Overdue and due-soon task notifications."""
    try:
        await run_notification_sweep(AsyncSessionLocal)
    except Exception:
        logger.exception("Task notification sweep failed")


async def run_notification_cleanup():
    """Drop read notifications past retention; archive unread ones."""
    try:
        async with AsyncSessionLocal() as db:
            summary = await NotificationService(db).cleanup_old_notifications(
                settings.NOTIFICATION_RETENTION_DAYS
            )
            await db.commit()
        logger.info("Notification cleanup: %s", summary)
    except Exception:
        logger.exception("Notification cleanup failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Hope Bridge Operations API...")

    try:
        async with async_engine.begin() as conn:
            if settings.CREATE_TABLES_ON_STARTUP:
                await conn.run_sync(Base.metadata.create_all)
            else:
                await conn.exec_driver_sql("SELECT 1")
        logger.info("Database connection verified")
    except Exception as e:
        logger.error("Database connection failed: %s", e)

    scheduler.add_job(
        run_task_notification_sweep,
        "interval",
        minutes=settings.NOTIFICATION_SWEEP_MINUTES,
        id="task_notification_sweep",
    )
    scheduler.add_job(run_notification_cleanup, "interval", hours=24, id="notification_cleanup")
    scheduler.start()
    logger.info("Scheduled jobs started (notification sweep, cleanup)")

    yield

    scheduler.shutdown()
    await async_engine.dispose()
    logger.info("Hope Bridge Operations API shut down")


app = FastAPI(
    title="Hope Bridge Operations API",
    description="Roles, permissions, tasks and messaging for the Hope Bridge operations dashboard",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def handle_unhandled(request: Request, exc: Exception):
    logger.error("Unhandled error at %s", request.url, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


from hopebridge.routes import admin, auth, dashboard, messages, notifications, tasks

app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(tasks.router)
app.include_router(messages.router)
app.include_router(notifications.router)
app.include_router(dashboard.router)


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "Hope Bridge Operations API", "version": "1.0.0"}
