"""
FastAPI Application - Regulatory Catalyst Dashboard API
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import init_database_async, close_engine
from processor import ConfigurationError
from utils import logger, init_logging
from .routes import router, error_response

init_logging(app_name="api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    logger.info("Starting API server")
    await init_database_async()
    yield
    # Shutdown
    logger.info("Shutting down API server")
    await close_engine()


app = FastAPI(
    title="Regulatory Catalyst Dashboard",
    description="FDA and SEC announcements scored for trading relevance",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routes
app.include_router(router, prefix="/api")


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"{request.url.path}: {exc}")
    return error_response(503, str(exc))


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Regulatory Catalyst Dashboard",
        "version": "1.0.0",
        "status": "running"
    }


def main():
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    main()
