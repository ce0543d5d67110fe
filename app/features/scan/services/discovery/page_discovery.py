import asyncio
from typing import List, Optional
from urllib.parse import urldefrag, urlparse

from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.by import By

from app.features.scan.services.browser.engine import build_driver
from app.features.scan.services.utils.url_utils import is_page_url
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)


class PageDiscoveryService:

    @staticmethod
    def discover_pages(url: str, max_pages: int = 10) -> List[str]:
        """
        Discover pages from a website using Selenium.

        Args:
            url: Base URL to start discovery from
            max_pages: Maximum number of pages to discover (default: 10)

        Returns:
            List of discovered URLs (all from same base domain), or [url]
            when the crawl cannot run at all
        """
        try:
            driver = build_driver()
        except WebDriverException as e:
            logger.error(f"Site crawl failed for {url}: {e}")
            return [url]

        try:
            # Parse base URL for domain validation
            base_parsed = urlparse(url)
            base_domain = f"{base_parsed.scheme}://{base_parsed.netloc}"

            start = urldefrag(url)[0]
            visited = set()
            to_visit = [start]
            pages = []

            while to_visit and len(pages) < max_pages:
                current = to_visit.pop(0)  # BFS
                if current in visited:
                    continue
                visited.add(current)

                try:
                    driver.get(current)
                    pages.append(current)

                    for link in driver.find_elements(By.TAG_NAME, "a"):
                        href = PageDiscoveryService._normalize(link.get_attribute("href"))
                        if not href or not PageDiscoveryService._is_same_domain(href, base_domain):
                            continue
                        if not is_page_url(href):
                            continue
                        if href not in visited and href not in to_visit:
                            to_visit.append(href)
                except WebDriverException as e:
                    logger.warning(f"Failed to load page {current}: {e}")
                    continue

            logger.info(f"Discovered {len(pages)} pages from {url}")
            return pages or [url]
        finally:
            driver.quit()

    @staticmethod
    async def crawl_site(url: str, max_pages: Optional[int] = None) -> List[str]:
        return await asyncio.to_thread(
            PageDiscoveryService.discover_pages, url, max_pages or settings.MAX_PAGES
        )

    @staticmethod
    def _normalize(href: Optional[str]) -> Optional[str]:
        if not href:
            return None
        return urldefrag(href)[0] or None

    @staticmethod
    def _is_same_domain(url: str, base_domain: str) -> bool:
        """
        Check if URL belongs to the same domain as base.

        Args:
            url: URL to check
            base_domain: Base domain (e.g., "https://example.com")

        Returns:
            True if URL is from same domain, False otherwise
        """
        try:
            parsed = urlparse(url)
            # Ensure URL has a valid scheme and netloc
            if not parsed.scheme or not parsed.netloc:
                return False
            url_domain = f"{parsed.scheme}://{parsed.netloc}"
            return url_domain == base_domain
        except ValueError:
            return False
