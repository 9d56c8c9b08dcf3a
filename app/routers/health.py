import logging
from fastapi import APIRouter

from app.config import GEMINI_API_KEY, is_key_configured
from app.dependencies import generation_client, supabase_client

logger = logging.getLogger(__name__)

router = APIRouter()

VERSION = "1.0.0"


@router.get("/")
async def root():
    return {
        "status": "online",
        "service": "Farm Advisory Service",
        "version": VERSION,
        "features": [
            "AI crop advisory",
            "Image-based crop disease diagnosis",
            "Advisory & diagnosis history",
        ]
    }


@router.get("/health")
async def health_check():
    services = {
        "generation": bool(generation_client) and is_key_configured(GEMINI_API_KEY),
        "supabase": bool(supabase_client),
    }
    return {
        "status": "healthy" if all(services.values()) else "degraded",
        "version": VERSION,
        "services": services,
    }
