"""
Browser Engine

Page contexts the scheduler loads pages into. Each context is an isolated
Chrome WebDriver; blocking Selenium calls are pushed onto worker threads
so many contexts can make progress at once.
"""
import asyncio
import time
from typing import Any, Callable, Protocol, TypeVar

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.support.ui import WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

from app.features.scan.schemas.results import Viewport
from app.platform.config import Settings, settings as default_settings
from app.platform.exceptions import ResourceAcquisitionError
from app.platform.logger import get_logger

logger = get_logger(__name__)

R = TypeVar("R")


class BrowserEngine(Protocol):
    """What the scheduler needs from a browser"""

    async def acquire(self) -> Any: ...

    async def navigate(self, handle: Any, url: str) -> float: ...

    async def set_viewport(self, handle: Any, viewport: Viewport) -> None: ...

    async def call(self, handle: Any, fn: Callable[..., R], *args: Any) -> R: ...

    async def release(self, handle: Any) -> None: ...


def build_driver(settings: Settings = default_settings) -> webdriver.Chrome:
    chrome_options = Options()
    if settings.BROWSER_HEADLESS:
        chrome_options.add_argument('--headless')
    chrome_options.add_argument('--no-sandbox')
    chrome_options.add_argument('--disable-dev-shm-usage')
    chrome_options.add_argument('--disable-gpu')

    if settings.CHROMEDRIVER_PATH:
        driver_service = Service(executable_path=settings.CHROMEDRIVER_PATH)
        driver = webdriver.Chrome(service=driver_service, options=chrome_options)
    elif settings.USE_WEBDRIVER_MANAGER:
        driver_service = Service(executable_path=ChromeDriverManager().install())
        driver = webdriver.Chrome(service=driver_service, options=chrome_options)
    else:
        # Selenium Manager resolves the driver
        driver = webdriver.Chrome(options=chrome_options)

    driver.set_page_load_timeout(settings.PAGE_LOAD_TIMEOUT)
    return driver


class SeleniumBrowserEngine:
    """BrowserEngine backed by one headless Chrome per acquired context"""

    def __init__(self, settings: Settings = default_settings):
        self.settings = settings

    async def acquire(self) -> webdriver.Chrome:
        try:
            return await asyncio.to_thread(build_driver, self.settings)
        except WebDriverException as e:
            raise ResourceAcquisitionError("about:blank", f"Could not start browser: {e.msg or e}") from e

    async def navigate(self, handle: webdriver.Chrome, url: str) -> float:
        """
        Load url and wait until the document is fully loaded.

        Returns:
            Load time in seconds

        Raises:
            ResourceAcquisitionError: On timeout or driver errors
        """
        try:
            return await asyncio.to_thread(self._load, handle, url)
        except TimeoutException as e:
            raise ResourceAcquisitionError(url, f"Page load timeout for {url}") from e
        except WebDriverException as e:
            raise ResourceAcquisitionError(url, f"WebDriver error loading {url}: {e.msg or e}") from e

    def _load(self, driver: webdriver.Chrome, url: str) -> float:
        start_time = time.time()
        driver.get(url)
        WebDriverWait(driver, self.settings.NETWORK_IDLE_TIMEOUT).until(
            lambda d: d.execute_script("return document.readyState") == "complete"
        )
        return time.time() - start_time

    async def set_viewport(self, handle: webdriver.Chrome, viewport: Viewport) -> None:
        await asyncio.to_thread(handle.set_window_size, viewport.width, viewport.height)

    async def call(self, handle: webdriver.Chrome, fn: Callable[..., R], *args: Any) -> R:
        return await asyncio.to_thread(fn, handle, *args)

    async def release(self, handle: webdriver.Chrome) -> None:
        try:
            await asyncio.to_thread(handle.quit)
        except WebDriverException as e:
            logger.warning(f"Failed to close browser context: {e}")
