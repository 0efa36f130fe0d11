"""Decomposition of a link's long URL into host, path and utm tags."""

from urllib.parse import parse_qs, unquote, urlsplit

from bitly_stats.core.exceptions import MalformedURLError
from bitly_stats.schemas import DecomposedURL

UTM_PARAMS = (
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
)


def first_value(values: list[str] | None, fallback: str = "") -> str:
    """Return the first value of a query parameter, or ``fallback``."""
    if not values:
        return fallback
    return values[0]


def decompose(long_url: str) -> DecomposedURL:
    """Split an absolute URL into host, path and the utm campaign tags.

    Args:
        long_url: The bitlink's target URL.

    Returns:
        DecomposedURL. The path is percent-decoded but not normalized
        (leading slash kept, dot segments and double slashes left alone).
        Missing utm tags are empty strings; repeated ones keep their first
        value.

    Raises:
        MalformedURLError: If the URL cannot be parsed or is not absolute.
    """
    try:
        parts = urlsplit(long_url)
        # Port validation is lazy in urllib
        parts.port
    except ValueError as e:
        raise MalformedURLError(f"cannot parse long URL {long_url!r}: {e}") from e

    if not parts.scheme or not parts.netloc:
        raise MalformedURLError(f"long URL {long_url!r} is not an absolute URL")

    query = parse_qs(parts.query, keep_blank_values=True)

    return DecomposedURL(
        host=parts.netloc.rpartition("@")[2],
        path=unquote(parts.path),
        **{name: first_value(query.get(name)) for name in UTM_PARAMS},
    )
