"""Label to API name conversion."""

import re

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]")
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")
_LEADING_NON_LETTERS = re.compile(r"^[^A-Za-z]*")
_TRAILING_UNDERSCORES = re.compile(r"_+$")


def to_api_name(label: str) -> str:
    """Convert an arbitrary label into a platform API name.

    API names only contain letters, digits and underscores, start with a
    letter, never contain two consecutive underscores and never end with an
    underscore. Every lookup and create call goes through this function so
    that existence checks match earlier creations by name.

    Args:
        label: Human readable label (e.g., 'Continuous Integration')

    Returns:
        API name (e.g., 'Continuous_Integration'); empty string for empty input
    """
    safe_chars = _UNSAFE_CHARS.sub("_", label)
    single_underscores = _REPEATED_UNDERSCORES.sub("_", safe_chars)
    starts_with_letter = _LEADING_NON_LETTERS.sub("", single_underscores, count=1)
    return _TRAILING_UNDERSCORES.sub("", starts_with_letter)
