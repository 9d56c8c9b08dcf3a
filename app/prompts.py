"""Prompt templates for the advisory and diagnosis requests"""
from app.config import LANGUAGE_MAP, DEFAULT_LANGUAGE

ADVICE_SECTIONS = [
    "0_best_practices",
    "1_common_challenges",
    "2_recommended_fertilizers",
    "3_irrigation_management",
    "4_harvesting_guidance",
]


def resolve_language(code: str) -> str:
    """Language code -> name used in the prompt (unknown codes fall back to English)"""
    return LANGUAGE_MAP.get((code or "").lower(), LANGUAGE_MAP[DEFAULT_LANGUAGE])


def build_advisory_prompt(crop: str = "", location: str = "", season: str = "", language: str = DEFAULT_LANGUAGE) -> str:
    lang = resolve_language(language)
    sections = ",\n".join(
        f'''    "{key}": {{
      "title": "Title in {lang}",
      "details": "Details in {lang}"
    }}'''
        for key in ADVICE_SECTIONS
    )

    return f"""You are an expert agricultural advisor. Provide farming advice in {lang} language for:
Crop: {(crop or '').strip() or 'general farming'}
Location: {(location or '').strip() or 'not specified'}
Season: {(season or '').strip() or 'current season'}

IMPORTANT: Provide the ENTIRE response in {lang} language, including all headings, labels, and content.

Format your response as JSON with this EXACT structure:
{{
  "diagnosis": "Brief summary in {lang}",
  "advice": {{
{sections}
  }}
}}

Remember: ALL text must be in {lang}, and use 0-based indexing (start from 0, not 1)."""


def build_diagnosis_prompt(language: str = DEFAULT_LANGUAGE) -> str:
    lang = resolve_language(language)
    return f"""You are an expert agricultural AI assistant specializing in crop disease diagnosis.
Analyze this image of a crop/plant and provide your ENTIRE response in {lang} language.

CRITICAL: Every single word, label, heading, and piece of content MUST be in {lang} language.

1. Diagnosis: Identify any diseases, pests, or health issues visible in the image (in {lang})
2. Confidence: Rate your confidence level (0-100%) as a number
3. Advice: Provide actionable treatment recommendations and preventive measures (in {lang})

Format your response as JSON with the following structure:
{{
  "diagnosis": "detailed diagnosis written entirely in {lang}",
  "confidence": 85,
  "advice": "detailed advice and recommendations written entirely in {lang}"
}}

You may use **double asterisks** to emphasise key terms."""


SYSTEM_INSTRUCTION = "You are an agricultural expert. Answer with a single JSON object only."
