import logging

import httpx
from openai import AsyncOpenAI
from supabase import create_client, Client

from app.config import (
    GEMINI_API_KEY,
    GENERATION_BASE_URL,
    SUPABASE_URL,
    SUPABASE_KEY,
    API_TIMEOUT,
    API_CONNECT_TIMEOUT,
    is_key_configured,
)

logger = logging.getLogger(__name__)

# Initialize generation client (Gemini via OpenAI-compatible endpoint)
generation_client = None
if is_key_configured(GEMINI_API_KEY):
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=API_CONNECT_TIMEOUT,
            read=API_TIMEOUT,
            write=API_TIMEOUT,
            pool=API_TIMEOUT
        )
    )
    generation_client = AsyncOpenAI(
        base_url=GENERATION_BASE_URL,
        api_key=GEMINI_API_KEY,
        http_client=http_client,
        max_retries=0,  # a failed attempt is resubmitted by the user
    )
    logger.info(f"Generation client initialized with {API_TIMEOUT}s timeout")

# Initialize Supabase (rows + crop image storage)
supabase_client: Client = None
if SUPABASE_URL and SUPABASE_KEY and SUPABASE_URL.startswith("http"):
    try:
        supabase_client = create_client(SUPABASE_URL, SUPABASE_KEY)
        logger.info("Supabase initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize Supabase: {e}")
