"""
Operation Capabilities

Maps operation ids to the coroutine functions that perform them.
Per-resource handlers receive the browser engine, a live page handle and
the target page; session handlers receive the run's SessionStore and only
read from it. Handlers return a payload model; merging it into the store
is left to the scheduler.
"""
import os
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel

from app.features.scan.schemas.content import SiteSummary, SitemapEntry, SitemapReport
from app.features.scan.schemas.results import ScreenshotCapture, Viewport
from app.features.scan.services.browser.engine import BrowserEngine
from app.features.scan.services.extraction.extractor_service import ExtractorService
from app.features.scan.services.orchestration.session_store import SessionStore
from app.features.scan.services.utils import url_utils
from app.platform.config import Settings, settings as default_settings


class PageTarget(BaseModel):
    """The page (and optional viewport) a per-resource handler works on"""
    url: str
    run_id: str
    page_name: str
    viewport: Optional[Viewport] = None


ResourceHandler = Callable[[BrowserEngine, Any, PageTarget], Awaitable[Optional[BaseModel]]]
SessionHandler = Callable[[SessionStore], Awaitable[Optional[BaseModel]]]


class Capabilities:

    def __init__(
        self,
        resource: Optional[Dict[str, ResourceHandler]] = None,
        session: Optional[Dict[str, SessionHandler]] = None,
    ):
        self.resource: Dict[str, ResourceHandler] = dict(resource or {})
        self.session: Dict[str, SessionHandler] = dict(session or {})

    def resource_handler(self, operation_id: str) -> Optional[ResourceHandler]:
        return self.resource.get(operation_id)

    def session_handler(self, operation_id: str) -> Optional[SessionHandler]:
        return self.session.get(operation_id)


def _extractor_handler(primitive: Callable) -> ResourceHandler:
    async def handler(engine: BrowserEngine, handle: Any, target: PageTarget):
        return await engine.call(handle, primitive)
    return handler


def screenshot_path(settings: Settings, target: PageTarget) -> str:
    viewport = target.viewport.name if target.viewport else "default"
    return os.path.join(
        settings.OUTPUT_DIR,
        target.run_id,
        target.page_name,
        "screenshots",
        f"{target.page_name}-{viewport}.png",
    )


def build_sitemap(store: SessionStore) -> SitemapReport:
    lastmod = datetime.utcnow().strftime("%Y-%m-%d")
    entries = [
        SitemapEntry(
            url=url,
            lastmod=lastmod,
            changefreq=url_utils.change_frequency(url),
            priority=url_utils.sitemap_priority(url),
        )
        for url in store.discovered_resources()
    ]
    entries.sort(key=lambda e: (-e.priority, len(e.url)))
    return SitemapReport(base_url=store.base_url, entries=entries)


def build_site_summary(store: SessionStore) -> SiteSummary:
    """Site-wide statistics and navigation structure from stored page data"""
    pages = sorted(store.generate_page_summaries(), key=lambda p: (p.depth, p.url))
    sections = sorted({segments[0] for segments in (url_utils.path_segments(p.url) for p in pages) if segments})
    return SiteSummary(
        base_url=store.base_url,
        total_pages=len(pages),
        pages=pages,
        statistics=store.statistics(),
        max_depth=max((p.depth for p in pages), default=0),
        main_sections=sections,
        orphan_pages=[p.url for p in pages if p.depth > 3 and p.content_type == "generic"],
    )


def default_capabilities(settings: Settings = default_settings) -> Capabilities:

    async def screenshots(engine: BrowserEngine, handle: Any, target: PageTarget) -> ScreenshotCapture:
        path = await engine.call(handle, ExtractorService.capture_screenshot, screenshot_path(settings, target))
        return ScreenshotCapture(
            url=target.url,
            viewport=target.viewport or Viewport(name="default", width=1920, height=1080),
            path=path,
        )

    async def sitemap(store: SessionStore) -> SitemapReport:
        return build_sitemap(store)

    async def site_summary(store: SessionStore) -> SiteSummary:
        return build_site_summary(store)

    return Capabilities(
        resource={
            "content-scraping": _extractor_handler(ExtractorService.extract_content),
            "seo": _extractor_handler(ExtractorService.extract_metadata),
            "api-key-scan": _extractor_handler(ExtractorService.scan_for_secrets),
            "accessibility": _extractor_handler(ExtractorService.extract_accessibility),
            "screenshots": screenshots,
        },
        session={
            "sitemap": sitemap,
            "site-summary": site_summary,
        },
    )
