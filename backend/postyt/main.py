import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .api import api_router, oauth_router
from .api.deps import get_registry


# Reuse uvicorn's logger so startup diagnostics are visible in normal dev logs.
logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log which platform integrations are available on startup."""
    registry = get_registry()
    for platform in registry.platforms():
        adapter = registry.resolve(platform.value)
        logger.info(
            "Platform %s: %s",
            platform.value,
            "enabled" if adapter.implemented else "not yet implemented",
        )
    logger.info("Credential state file: %s", settings.credentials_state_path)
    yield


app = FastAPI(
    title="postyt",
    description="Publish one video to many social accounts at once",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router)
# Provider redirect URIs are registered without the /api prefix
app.include_router(oauth_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
