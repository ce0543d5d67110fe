"""
Test configuration and fixtures for the Site Scan Scheduler.

Provides an in-memory browser engine, discovery stub and capability table
so the scheduler can be exercised without launching Chrome.
"""

import asyncio
from typing import Generator, List, Optional

from dotenv import load_dotenv

import pytest
from fastapi.testclient import TestClient

from app.features.scan.schemas.content import ImageData, ScrapedContent
from app.features.scan.schemas.results import AccessibilityReport, ScreenshotCapture, SecretScanReport
from app.features.scan.schemas.seo import MetadataField, SeoReport
from app.features.scan.services.orchestration.capabilities import (
    Capabilities,
    build_site_summary,
    build_sitemap,
)
from app.platform.config import Settings
from app.platform.exceptions import ResourceAcquisitionError

load_dotenv()


class FakeEngine:
    """BrowserEngine that records every call instead of driving a browser."""

    def __init__(self, fail_urls=(), fail_acquire: bool = False, load_time: float = 0.25):
        self.fail_urls = set(fail_urls)
        self.fail_acquire = fail_acquire
        self.load_time = load_time
        self.acquired = 0
        self.released = 0
        self.open = 0
        self.max_open = 0
        self.navigations: List[str] = []
        self.viewports: List[str] = []

    async def acquire(self):
        if self.fail_acquire:
            raise ResourceAcquisitionError("about:blank", "Could not start browser")
        self.acquired += 1
        self.open += 1
        self.max_open = max(self.max_open, self.open)
        return {"id": self.acquired, "url": None, "viewport": None}

    async def navigate(self, handle, url: str) -> float:
        self.navigations.append(url)
        await asyncio.sleep(0)
        if url in self.fail_urls:
            raise ResourceAcquisitionError(url, f"Navigation to {url} failed")
        handle["url"] = url
        return self.load_time

    async def set_viewport(self, handle, viewport) -> None:
        handle["viewport"] = viewport.name
        self.viewports.append(viewport.name)

    async def call(self, handle, fn, *args):
        return fn(handle, *args)

    async def release(self, handle) -> None:
        self.released += 1
        self.open -= 1


class FakeDiscovery:
    def __init__(self, urls: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.urls = list(urls or [])
        self.error = error
        self.calls = []

    async def crawl_site(self, url: str, max_pages: int) -> List[str]:
        self.calls.append((url, max_pages))
        if self.error:
            raise self.error
        return list(self.urls)


class RecordingCapabilities(Capabilities):
    """Capabilities whose handlers log start/end events per page."""

    def __init__(self, failing: Optional[dict] = None):
        self.events: List[tuple] = []
        self.failing = failing or {}
        super().__init__(
            resource={
                "content-scraping": self._handler("content-scraping", self._content),
                "seo": self._handler("seo", self._seo),
                "api-key-scan": self._handler("api-key-scan", lambda t: SecretScanReport(url=t.url)),
                "accessibility": self._handler("accessibility", lambda t: AccessibilityReport(url=t.url)),
                "screenshots": self._handler("screenshots", self._screenshot),
            },
            session={
                "sitemap": self._session(build_sitemap),
                "site-summary": self._session(build_site_summary),
            },
        )

    def _handler(self, operation_id, build):
        async def handler(engine, handle, target):
            self.events.append(("start", operation_id, target.url, handle["id"]))
            await asyncio.sleep(0)
            try:
                if (operation_id, target.url) in self.failing:
                    raise RuntimeError(self.failing[(operation_id, target.url)])
                return build(target)
            finally:
                self.events.append(("end", operation_id, target.url, handle["id"]))
        return handler

    @staticmethod
    def _session(build):
        async def handler(store):
            return build(store)
        return handler

    @staticmethod
    def _content(target):
        return ScrapedContent(
            url=target.url,
            title="Example",
            paragraphs=["one two three four five", "six seven eight nine ten"],
            images=[ImageData(src=f"{target.url}/img-{i}.png") for i in range(3)],
        )

    @staticmethod
    def _seo(target):
        return SeoReport(url=target.url, title=MetadataField(), description=MetadataField())

    @staticmethod
    def _screenshot(target):
        return ScreenshotCapture(url=target.url, viewport=target.viewport, path=f"{target.viewport.name}.png")


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def engine_factory():
    return FakeEngine


@pytest.fixture
def discovery_factory():
    return FakeDiscovery


@pytest.fixture
def capabilities() -> RecordingCapabilities:
    return RecordingCapabilities()


@pytest.fixture
def capabilities_factory():
    return RecordingCapabilities


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(OUTPUT_DIR=str(tmp_path / "sessions"), TASK_TIMEOUT=None)


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from app.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    This fixture provides a clean TestClient instance for each test function,
    ensuring proper isolation between tests.
    """
    with TestClient(test_app) as test_client:
        yield test_client
