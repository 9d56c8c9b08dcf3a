from typing import Dict, List

# ``**bold**`` is the only markup the diagnosis prompt allows
EMPHASIS_MARKER = "**"


def split_emphasis(text: str) -> List[Dict[str, object]]:
    """
    Split text on ``**`` into display segments.

    Odd-numbered segments are bold, matching how the markers pair up:
    "a **b** c" -> [a, b(bold), c]. Empty segments are dropped.
    """
    if not text:
        return []
    segments = []
    for i, part in enumerate(text.split(EMPHASIS_MARKER)):
        if part:
            segments.append({"text": part, "bold": i % 2 == 1})
    return segments


def strip_emphasis(text: str) -> str:
    """Plain-text form (used for log lines and short summaries)"""
    return (text or "").replace(EMPHASIS_MARKER, "")


def truncate(text: str, limit: int = 120) -> str:
    text = strip_emphasis(text).strip()
    if len(text) <= limit:
        return text
    return text[:limit - 1].rstrip() + "…"
