"""Application entry point for the Diet Adherence API.

Defines the FastAPI app, middleware and exception handlers, and includes the
API routers from the `api` package. The `lifespan` handler creates the
tables on startup and rebuilds meal reminders for the active plan.
"""

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session
from contextlib import asynccontextmanager

from database import init_db
from database.database import WriteSessionLocal
from database.deps import get_db_read, get_notification_center
from core.exceptions import PersistenceError
from core.logger import get_logger
from core.error_handlers import register_exception_handlers
from services.diet_tracker import DietTracker
from api.plans import router as plans_router
from api.meals import router as meals_router
from api.adherence import router as adherence_router
from api.reminders import router as reminders_router

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Fastapi lifespan context: initialize resources before serving requests."""
    init_db()
    # Pending alerts do not survive a restart of the in-memory center.
    db = WriteSessionLocal()
    try:
        await DietTracker(db, get_notification_center()).reschedule()
    finally:
        db.close()
    yield


app = FastAPI(title="Diet Adherence API", version="1.0.0", lifespan=lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests and their responses."""
    logger.info("%s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
        return response
    except Exception:
        logger.exception("Request error: %s %s", request.method, request.url.path)
        raise


@app.get("/health")
def health(db: Session = Depends(get_db_read)):
    """Return basic health status and database connectivity.

    Raises:
        PersistenceError: If the database cannot be reached.
    """
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.exception("Health check failed")
        raise PersistenceError(f"Database health check failed: {e}", operation="health") from e
    return {"status": "healthy", "database": "connected"}


app.include_router(plans_router)
app.include_router(meals_router)
app.include_router(adherence_router)
app.include_router(reminders_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
