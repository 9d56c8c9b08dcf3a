import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# ============================================================================#
# ENVIRONMENT / SERVICES
# ============================================================================#
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
# Gemini through its OpenAI-compatible endpoint (any chat-completions host works)
GENERATION_BASE_URL = os.getenv(
    "GENERATION_BASE_URL",
    "https://generativelanguage.googleapis.com/v1beta/openai/"
)
GENERATION_MODEL = os.getenv("GENERATION_MODEL", "gemini-flash-latest")
GENERATION_TEMPERATURE = float(os.getenv("GENERATION_TEMPERATURE", "0.4"))

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Admin Authentication
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN")

# ============================================================================#
# STORAGE LAYOUT
# ============================================================================#
ADVISORY_TABLE = os.getenv("ADVISORY_TABLE", "advisory_logs")
DIAGNOSTIC_TABLE = os.getenv("DIAGNOSTIC_TABLE", "crop_diagnostics")
CROP_IMAGES_BUCKET = os.getenv("CROP_IMAGES_BUCKET", "crop-images")

# Timeout configuration for the generation call (seconds)
API_TIMEOUT = float(os.getenv("API_TIMEOUT", "60"))
API_CONNECT_TIMEOUT = float(os.getenv("API_CONNECT_TIMEOUT", "15"))

# Upload limits
MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))  # 10 MB

# Rendering
MAX_RENDER_DEPTH = 20  # nesting levels accepted from model-authored advice

# Rate limiting for generation endpoints (slowapi syntax)
GENERATION_RATE_LIMIT = os.getenv("GENERATION_RATE_LIMIT", "10/minute")

# Output languages offered to the user
LANGUAGE_MAP = {
    "en": "English",
    "hi": "Hindi",
    "gu": "Gujarati",
}
DEFAULT_LANGUAGE = "en"

# Keys that were copied from the sample .env without being filled in
PLACEHOLDER_KEY_PREFIX = "A***"


def is_key_configured(key) -> bool:
    """True when an API key is present and is not the sample placeholder"""
    return bool(key) and not key.startswith(PLACEHOLDER_KEY_PREFIX)
