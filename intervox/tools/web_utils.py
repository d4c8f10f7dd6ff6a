from __future__ import annotations

import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from intervox.models.schemas import SourceType

_URL_RE = re.compile(r"https?://[^\s<>\"')\]]+")

# Host suffix -> source type. First match wins.
_HOST_SOURCE_TYPES: list[tuple[str, SourceType]] = [
    ("linkedin.com", SourceType.PROFESSIONAL_NETWORK),
    ("twitter.com", SourceType.SOCIAL_NETWORK),
    ("x.com", SourceType.SOCIAL_NETWORK),
    ("facebook.com", SourceType.SOCIAL_NETWORK),
    ("instagram.com", SourceType.SOCIAL_NETWORK),
    ("wikipedia.org", SourceType.ENCYCLOPEDIA),
    ("britannica.com", SourceType.ENCYCLOPEDIA),
    ("news.google.com", SourceType.NEWS),
    ("reuters.com", SourceType.NEWS),
    ("bbc.co.uk", SourceType.NEWS),
    ("bbc.com", SourceType.NEWS),
    ("nytimes.com", SourceType.NEWS),
    ("theguardian.com", SourceType.NEWS),
    ("techcrunch.com", SourceType.NEWS),
    ("podcasts.apple.com", SourceType.PODCAST_DIRECTORY),
    ("open.spotify.com", SourceType.PODCAST_DIRECTORY),
    ("listennotes.com", SourceType.PODCAST_DIRECTORY),
    ("youtube.com", SourceType.VIDEO_PLATFORM),
    ("youtu.be", SourceType.VIDEO_PLATFORM),
    ("vimeo.com", SourceType.VIDEO_PLATFORM),
    ("github.com", SourceType.CODE_HOSTING),
    ("gitlab.com", SourceType.CODE_HOSTING),
    ("google.com", SourceType.GENERIC_SEARCH),
    ("bing.com", SourceType.GENERIC_SEARCH),
    ("duckduckgo.com", SourceType.GENERIC_SEARCH),
]

# Links that are never worth a follow-up fetch.
_SKIP_LINK_PATTERNS = (
    "/login",
    "/signin",
    "/signup",
    "accounts.google.",
    "javascript:",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".css",
    ".js",
)


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def clean_content(text: str, max_length: int = 8000) -> str:
    """Clean scraped content: collapse whitespace, trim to max length."""
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text


def extract_domain(url: str) -> str:
    """Extract domain from URL for display."""
    try:
        return urlparse(url).netloc
    except ValueError:
        return url


def detect_source_type(url: str) -> SourceType:
    """Map a URL to the source type of the site it points at."""
    host = extract_domain(url).lower().split(":")[0]
    if host.startswith("www."):
        host = host[4:]
    if not host:
        return SourceType.OTHER
    for suffix, source_type in _HOST_SOURCE_TYPES:
        if host == suffix or host.endswith("." + suffix):
            return source_type
    return SourceType.OTHER


def looks_like_html(text: str) -> bool:
    head = text[:2000].lower()
    return "<html" in head or "<body" in head or "<div" in head or "<p>" in head


def html_to_text(raw: str) -> str:
    """Reduce an HTML document to readable text. Plain text passes through."""
    if not raw or not looks_like_html(raw):
        return raw or ""
    soup = BeautifulSoup(raw, "html.parser")
    for tag in soup(["script", "style", "noscript", "nav", "header", "footer", "aside", "form", "svg"]):
        tag.decompose()
    text = soup.get_text(separator="\n")
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def extract_links(text: str, limit: int | None = None) -> list[str]:
    """Collect unique http(s) links from HTML anchors or plain text, in order."""
    found: list[str] = []
    if looks_like_html(text):
        soup = BeautifulSoup(text, "html.parser")
        found.extend(a["href"] for a in soup.find_all("a", href=True))
    found.extend(_URL_RE.findall(text))

    links: list[str] = []
    seen: set[str] = set()
    for link in found:
        link = link.strip().rstrip(".,;:")
        lowered = link.lower()
        if not is_valid_url(link) or lowered in seen:
            continue
        if any(pattern in lowered for pattern in _SKIP_LINK_PATTERNS):
            continue
        seen.add(lowered)
        links.append(link)
        if limit is not None and len(links) >= limit:
            break
    return links
