import base64
import logging
from typing import Optional, Tuple

import httpx
import openai

from app.config import GEMINI_API_KEY, GENERATION_MODEL, GENERATION_TEMPERATURE, is_key_configured
from app.dependencies import generation_client
from app.errors import ConfigurationError, GenerationServiceError
from app.prompts import SYSTEM_INSTRUCTION

logger = logging.getLogger(__name__)

# (bytes, mime type) of an inline image
InlineImage = Tuple[bytes, str]


def to_data_url(image_bytes: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


class GenerationService:
    """Single request/response call to the generation model"""

    def __init__(self, client=None, model: str = GENERATION_MODEL, api_key: Optional[str] = None):
        self.client = client or generation_client
        self.model = model
        self.api_key = api_key if api_key is not None else GEMINI_API_KEY

    def ensure_configured(self):
        """Raise before any network call when the credential is missing"""
        if not self.client or not is_key_configured(self.api_key):
            logger.error("Gemini API key not configured")
            raise ConfigurationError("Gemini API key is not configured")

    async def generate(self, prompt: str, image: Optional[InlineImage] = None) -> str:
        """Send ``prompt`` (plus an optional inline image) and return the reply text"""
        self.ensure_configured()

        if image:
            image_bytes, mime_type = image
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": to_data_url(image_bytes, mime_type)}},
            ]
        else:
            content = prompt

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_INSTRUCTION},
                    {"role": "user", "content": content},
                ],
                temperature=GENERATION_TEMPERATURE,
            )
        except openai.APIStatusError as e:
            logger.error(f"Generation API error: {e.status_code} {e.message}")
            raise GenerationServiceError(f"AI service failed: {e.status_code}") from e
        except (openai.APIConnectionError, httpx.HTTPError) as e:
            # APITimeoutError is an APIConnectionError
            logger.error(f"Generation API unreachable: {e}")
            raise GenerationServiceError(f"AI service unreachable: {e}") from e

        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise GenerationServiceError("AI service returned no content") from e
        if not text:
            raise GenerationServiceError("AI service returned no content")

        logger.info(f"Generation raw response: {text[:300]}...")
        return text
