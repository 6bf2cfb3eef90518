import html
import re
from datetime import datetime
from typing import Optional
import bleach


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied search term.

    - Strips HTML tags using bleach.clean(..., strip=True)
    - Removes obvious SQL metacharacters like '--' and ';'
    - Trims whitespace

    bleach escapes what it keeps for HTML output; the term is matched
    against raw stored text, so the entities are decoded again.
    """
    if value is None:
        return ""
    # remove NULL bytes
    val = value.replace("\x00", "")
    # strip tags
    val = html.unescape(bleach.clean(val, strip=True))
    # remove common SQL comment and statement separators
    val = re.sub(r"(--|;)", "", val)
    return val.strip()


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip markup from free text (descriptions, delivery notes). Empty becomes None.

    Stored as plain text: '&' and '<' survive unescaped, so saving twice is a no-op.
    """
    if value is None:
        return None
    val = html.unescape(bleach.clean(value.replace("\x00", ""), tags=set(), strip=True)).strip()
    return val or None


def format_order_number(sequence: int, year: Optional[int] = None) -> str:
    if year is None:
        year = datetime.now().year
    return f"AGF-{year}-{sequence:06d}"


def format_currency(amount: int) -> str:
    """Render minor units as a display string, e.g. 25000 -> '250.00'."""
    return f"{amount // 100}.{amount % 100:02d}"
