import re
from typing import Optional
import bleach


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string before it is stored and shown on screens.

    - Strips all HTML tags using bleach.clean(..., tags=set(), strip=True)
    - Removes NULL bytes and collapses runs of whitespace
    - Trims whitespace
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    val = bleach.clean(val, tags=set(), strip=True)
    # bleach escapes bare ampersands; menu names like "Fish & Chips" stay literal
    val = val.replace("&amp;", "&")
    val = re.sub(r"\s+", " ", val)
    return val.strip()


def sanitize_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return sanitize_input(value) or None
