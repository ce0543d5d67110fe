import hashlib
import re
from typing import List
from urllib.parse import parse_qsl, urlparse

SKIP_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".zip", ".rar", ".tar", ".gz",
    ".mp3", ".mp4", ".avi", ".mov", ".wmv",
    ".css", ".js", ".json", ".xml", ".rss",
    ".txt", ".log",
)

SKIP_PATHS = (
    "/api/", "/admin/", "/wp-admin/", "/wp-content/",
    "/assets/", "/static/", "/images/", "/img/", "/css/", "/js/",
    "/fonts/", "/downloads/", "/uploads/",
    "/tag/", "/category/", "/author/",
    "/feed", "/rss", "/sitemap",
)

TRACKING_PARAM_PREFIXES = ("utm_", "fbclid", "gclid", "ref", "source")


def path_segments(url: str) -> List[str]:
    try:
        return [segment for segment in urlparse(url).path.split("/") if segment]
    except ValueError:
        return []


def url_depth(url: str) -> int:
    return len(path_segments(url))


def page_name(url: str) -> str:
    """
    Filesystem-safe name for a page, "index" for the site root.

    Single-segment paths keep their slug (https://example.com/about -> about).
    Any path the slug cannot be mapped back from (nested paths, extensions,
    queries, unsafe characters) gets a short digest of the full URL, so two
    pages never share a name:

    https://example.com/blog/post-1.html -> blog-post-1-<8 hex chars>
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return f"index-{_url_digest(url)}"
    path = parsed.path
    if path in ("", "/") and not parsed.query and not parsed.params:
        return "index"

    name = path.lstrip("/").replace("/", "-")
    name = re.sub(r"\.[^.]*$", "", name)
    name = re.sub(r"[^a-zA-Z0-9_-]", "-", name)
    name = re.sub(r"-+", "-", name).strip("-") or "index"
    if name != "index" and path == f"/{name}" and not parsed.query and not parsed.params:
        return name
    return f"{name}-{_url_digest(url)}"


def _url_digest(url: str) -> str:
    return hashlib.sha1(url.encode("utf-8")).hexdigest()[:8]


def title_from_url(url: str) -> str:
    segments = path_segments(url)
    if not segments:
        return "Home"
    return re.sub(r"[-_]", " ", segments[-1]).title()


def content_type(url: str) -> str:
    """Classify a page by its URL path (homepage, blog, product, ...)."""
    try:
        if urlparse(url).path in ("", "/"):
            return "homepage"
    except ValueError:
        pass

    lowered = url.lower()
    if any(marker in lowered for marker in ("/blog/", "/news/", "/post/", "/article/")):
        return "blog"
    if any(marker in lowered for marker in ("/product/", "/shop/", "/store/")):
        return "product"
    if any(marker in lowered for marker in ("/service/", "/solution/")):
        return "service"
    if "/about" in lowered:
        return "about"
    if "/contact" in lowered:
        return "contact"
    return "generic"


def is_page_url(url: str) -> bool:
    """False for assets, admin/feed paths and links carrying tracking parameters"""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False

    path = parsed.path.lower()
    if path.endswith(SKIP_EXTENSIONS):
        return False
    if any(marker in path for marker in SKIP_PATHS):
        return False
    if path.startswith("/search") and parsed.query:
        return False

    for key, _ in parse_qsl(parsed.query, keep_blank_values=True):
        if key.startswith(TRACKING_PARAM_PREFIXES):
            return False
    return True


def sitemap_priority(url: str) -> float:
    depth = url_depth(url)
    if depth == 0:
        return 1.0
    return {1: 0.8, 2: 0.6, 3: 0.4}.get(depth, 0.2)


def change_frequency(url: str) -> str:
    lowered = url.lower()
    if any(marker in lowered for marker in ("/blog/", "/news/", "/post/", "/article/")):
        return "weekly"
    if any(marker in lowered for marker in ("/product/", "/service/", "/category/")):
        return "monthly"
    if any(marker in lowered for marker in ("/about", "/contact", "/privacy", "/terms")):
        return "yearly"
    return "monthly"
