from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import APP_ADDR, APP_PORT, COMMIT_HASH, ENV, LOG_LEVEL
from app.database import close_db, get_db, init_db
from app.logging_config import get_logger, setup_logging
from app.realtime.connection_manager import ConnectionManager
from app.routers.live_messages import router as live_messages_router
from app.routers.messages import router as messages_router
from app.routers.realtime import router as realtime_router

setup_logging(LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown."""
    # Startup
    await init_db()
    logger.info("Messaging API started (env=%s, version=%s)", ENV, COMMIT_HASH)
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title="Ngurra Messaging Service",
    description="Direct and group messaging with live delivery, presence and read receipts",
    version=COMMIT_HASH or "dev",
    lifespan=lifespan,
)

# One hub per worker process
app.state.connections = ConnectionManager()

# Include routers
app.include_router(messages_router, prefix="/messages", tags=["messages"])
app.include_router(
    live_messages_router, prefix="/live-messages", tags=["live-messages"]
)
app.include_router(realtime_router, tags=["realtime"])


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Answer malformed requests with 400, like the ValueErrors raised by services."""
    return JSONResponse(
        status_code=400, content={"detail": jsonable_encoder(exc.errors())}
    )


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)) -> Dict[str, Optional[str]]:
    """Health check endpoint with database connectivity."""
    try:
        # Test database connection
        result = await db.execute(text("SELECT 1"))
        db_status = "connected" if result.scalar() == 1 else "error"
    except Exception:
        logger.warning("Health check could not reach the database", exc_info=True)
        db_status = "disconnected"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "database": db_status,
        "environment": ENV,
        "version": COMMIT_HASH,
    }


# If run directly, start the server
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=APP_ADDR, port=APP_PORT)
