# Farm Advisory Service v1.0.0
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware

from app.config import GEMINI_API_KEY, ADMIN_TOKEN, CROP_IMAGES_BUCKET, is_key_configured
from app.dependencies import generation_client, supabase_client
from app.routers import admin, advisory, diagnosis, health
from app.routers.common import limiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================================================#
# Lifespan Events
# ============================================================================#
@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    # Startup
    logger.info("=" * 60)
    logger.info("Starting Farm Advisory Service")
    logger.info(f"Gemini API: {'✓' if generation_client and is_key_configured(GEMINI_API_KEY) else '✗'}")
    logger.info(f"Supabase: {'✓' if supabase_client else '✗'} (bucket: {CROP_IMAGES_BUCKET})")
    logger.info(f"Admin API: {'✓' if ADMIN_TOKEN else '✗'}")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")
    if generation_client:
        await generation_client.close()


# Initialize FastAPI app
app = FastAPI(
    title="Farm Advisory Service",
    description="AI crop advisory and disease diagnosis with stored history",
    version="1.0.0",
    lifespan=lifespan
)

# Initialize Rate Limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(advisory.router)
app.include_router(diagnosis.router)
app.include_router(admin.router)


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=False)
