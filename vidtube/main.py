"""FastAPI application initialization."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vidtube.api.dependencies import get_media_service
from vidtube.api.error_handling import register_exception_handlers
from vidtube.api.middleware import CorrelationIdMiddleware
from vidtube.api.users import router as users_router
from vidtube.config import get_settings
from vidtube.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    from vidtube.database import close_database, init_database, run_migrations

    await init_database()
    await run_migrations()
    logger.info("database_initialized")

    logger.info("application_started", log_level=settings.log_level)

    yield

    await get_media_service().close()
    await close_database()

    logger.info("application_shutdown")


app = FastAPI(
    title="VidTube - User Accounts API",
    description="Registration, login and session management for VidTube users",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation ID middleware for request tracking and observability
app.add_middleware(CorrelationIdMiddleware)

app.include_router(users_router)


@app.get("/health", tags=["Health"])
async def health() -> dict:
    """Report database connectivity."""
    from vidtube.database import health_check

    healthy = await health_check()
    return {"status": "healthy" if healthy else "degraded", "database": healthy}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("vidtube.main:app", host="0.0.0.0", port=8000, reload=True)
