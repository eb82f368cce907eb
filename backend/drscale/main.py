import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from drscale import __version__
from drscale.core.errors import DrScaleError
from drscale.routes import (
    auth_router,
    billing_router,
    team_router,
)

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Create app
app = FastAPI(
    title="Dr. Scale API",
    description="Call billing, balance guard and team invitations",
    version=__version__,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router, prefix="/api")
app.include_router(billing_router, prefix="/api")
app.include_router(team_router, prefix="/api")


@app.exception_handler(DrScaleError)
async def drscale_error_handler(request: Request, exc: DrScaleError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code})


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "version": __version__}


@app.on_event("startup")
async def startup_db_client():
    from drscale.core.database import ensure_indexes
    logger.info(f"Starting Dr. Scale API v{__version__}")
    await ensure_indexes()


@app.on_event("shutdown")
async def shutdown_db_client():
    from drscale.core.database import client
    client.close()
