import re
from typing import Optional
import bleach

MAX_SEARCH_LENGTH = 100


def sanitize_input(value: Optional[str]) -> str:
    """Clean a free-text product search before it reaches the query.

    - Strips HTML tags using bleach.clean(..., strip=True)
    - Collapses runs of whitespace and trims
    - Caps the length at MAX_SEARCH_LENGTH characters
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    val = bleach.clean(val, strip=True)
    val = re.sub(r"\s+", " ", val)
    return val.strip()[:MAX_SEARCH_LENGTH]


def like_pattern(text: str) -> str:
    """Substring pattern for LIKE with the wildcards in ``text`` matched literally (escape char ``\\``)."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
