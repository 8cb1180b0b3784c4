"""
Label and path normalization.

Mirrors what the aggregation queries do when normalization is requested so
that every provider groups the same way:
- segment labels are lower-cased
- URL paths lose their query string and fragment and are lower-cased
"""

import re
from typing import Optional

_QUERY_OR_FRAGMENT = re.compile(r"[?#].*$")


def normalize_label(label: Optional[str]) -> Optional[str]:
    """
    Lower-case a segment label.

    None passes through so that the row schema can map it to "unknown".
    """
    if label is None:
        return None
    return str(label).lower()


def normalize_path(path: Optional[str]) -> Optional[str]:
    """
    Strip query string and fragment from a URL path and lower-case it.

    Examples:
        "/Pricing?plan=pro" -> "/pricing"
        "/docs#install"     -> "/docs"
        None                -> None (session entry/exit marker)
    """
    if path is None:
        return None
    return _QUERY_OR_FRAGMENT.sub("", str(path)).lower()
