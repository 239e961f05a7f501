"""apix http_utils - default headers and content-type classification."""

from urllib.parse import unquote, urlparse

from requests.structures import CaseInsensitiveDict

from apix import __version__

USER_AGENT = f"apix/{__version__}"

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "application/json",
    "Accept-Encoding": "gzip",
    "Content-Type": "application/json",
}

FALLBACK_FILENAME = "unknown.bin"

# Checked in order, first substring match wins.
LANGUAGES = (
    ("json", "json"),
    ("xml", "xml"),
    ("html", "html"),
    ("css", "css"),
    ("javascript", "js"),
)

HTTP_VERSIONS = {9: "HTTP/0.9", 10: "HTTP/1.0", 11: "HTTP/1.1", 20: "HTTP/2", 30: "HTTP/3"}


def merge_with_defaults(headers: dict[str, str] | None) -> CaseInsensitiveDict:
    """Overlay caller headers on the defaults, key by key, ignoring case."""
    merged = CaseInsensitiveDict(DEFAULT_HEADERS)
    if headers:
        merged.update(headers)
    return merged


def get_language(content_type: str | None) -> str | None:
    """Map a Content-Type to a display language.

    Returns None when there is no Content-Type at all, which callers treat
    as binary content to stream. Unknown types fall back to ``txt``.
    """
    if content_type is None:
        return None
    lowered = content_type.lower()
    for needle, language in LANGUAGES:
        if needle in lowered:
            return language
    return "txt"


def http_version(raw_version: int | None) -> str:
    return HTTP_VERSIONS.get(raw_version or 11, "HTTP/1.1")


def output_filename_from_url(url: str) -> str:
    """Last path segment of the URL, or a generic name when there is none."""
    segment = unquote(urlparse(url).path).rsplit("/", 1)[-1]
    return segment or FALLBACK_FILENAME
