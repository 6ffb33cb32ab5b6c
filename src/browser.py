#!/usr/bin/env python3
"""
Browser Session Module

Scoped headless Chrome session used by both capture tiers. The session is
a context manager: the WebDriver is quit on every exit path, including
exceptions raised while the session is in use.
"""

import logging
import time
from typing import Optional, Dict, Any, List

from selenium import webdriver
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.chrome.service import Service as ChromeService
from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support.ui import WebDriverWait
from selenium.webdriver.common.by import By
from selenium.common.exceptions import TimeoutException, WebDriverException
from webdriver_manager.chrome import ChromeDriverManager

try:
    from .exceptions import BrowserLaunchError
except ImportError:
    from exceptions import BrowserLaunchError

logger = logging.getLogger(__name__)

_DOCUMENT_SIZE_SCRIPT = """
return [
    Math.max(document.documentElement.scrollWidth, document.body ? document.body.scrollWidth : 0),
    Math.max(document.documentElement.scrollHeight, document.body ? document.body.scrollHeight : 0)
];
"""


class BrowserSession:
    """
    Headless Chrome session with a fixed viewport and device scale factor.

    Args:
        browser_config: the ``browser`` section of the configuration
        lightweight: skip the desktop user agent and automation hardening,
            used for rendering local fragment files
    """

    def __init__(self, browser_config: Dict[str, Any], lightweight: bool = False):
        self.config = browser_config
        self.lightweight = lightweight
        self.driver: Optional[webdriver.Chrome] = None
        self.window_size = tuple(browser_config.get('window_size', (1280, 800)))

    def _build_options(self) -> ChromeOptions:
        """Build Chrome options for an isolated headless session"""
        options = ChromeOptions()

        if self.config.get('chrome_binary_path'):
            options.binary_location = self.config['chrome_binary_path']
            logger.info(f"Using Chrome binary: {self.config['chrome_binary_path']}")

        if self.config.get('headless', True):
            options.add_argument('--headless=new')

        # Only wait for DOMContentLoaded on navigation
        options.page_load_strategy = 'eager'

        options.add_argument('--no-sandbox')
        options.add_argument('--disable-dev-shm-usage')
        options.add_argument('--disable-gpu')
        options.add_argument('--hide-scrollbars')
        options.add_argument('--no-first-run')
        options.add_argument('--disable-extensions')
        options.add_argument('--proxy-server=direct://')
        options.add_argument('--proxy-bypass-list=*')

        width, height = self.window_size
        options.add_argument(f'--window-size={width},{height}')
        options.add_argument(f"--force-device-scale-factor={self.config.get('device_scale_factor', 2)}")

        if not self.lightweight:
            options.add_argument('--disable-blink-features=AutomationControlled')
            options.add_experimental_option("excludeSwitches", ["enable-automation"])
            if self.config.get('user_agent'):
                options.add_argument(f'--user-agent={self.config["user_agent"]}')

        return options

    def start(self) -> webdriver.Chrome:
        """
        Start the browser and initialize WebDriver

        Raises:
            BrowserLaunchError: if Chrome or ChromeDriver cannot be started
        """
        if self.driver:
            logger.debug("WebDriver already started")
            return self.driver

        try:
            options = self._build_options()
            chromedriver_path = self.config.get('chromedriver_path')
            if not chromedriver_path:
                logger.debug("Using webdriver-manager to get compatible ChromeDriver")
                chromedriver_path = ChromeDriverManager().install()

            service = ChromeService(chromedriver_path)
            self.driver = webdriver.Chrome(service=service, options=options)
            self.driver.set_page_load_timeout(self.config.get('page_load_timeout', 60))
        except Exception as e:
            logger.error(f"ChromeDriver creation failed: {e}")
            self.stop()
            raise BrowserLaunchError(f"Could not start headless Chrome: {e}") from e

        logger.info(f"Started Chrome WebDriver (headless={self.config.get('headless', True)}, "
                    f"lightweight={self.lightweight})")
        return self.driver

    def stop(self):
        """Stop the browser and cleanup resources"""
        if self.driver:
            try:
                self.driver.quit()
                logger.info("Browser closed")
            except Exception as e:
                logger.warning(f"Error stopping WebDriver: {e}")
            finally:
                self.driver = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def open(self, url: str):
        """Navigate to url; raises TimeoutException/WebDriverException on failure"""
        logger.debug(f"Navigating to {url}")
        self.driver.get(url)

    def wait_for_page_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for document.readyState to reach "complete"

        Returns:
            True if the page finished loading, False if the wait timed out
        """
        if timeout is None:
            timeout = self.config.get('network_idle_timeout', 30)

        try:
            WebDriverWait(self.driver, timeout).until(
                lambda d: d.execute_script("return document.readyState") == "complete"
            )
            return True
        except TimeoutException:
            logger.warning(f"Page did not finish loading within {timeout}s, continuing in degraded mode")
            return False

    def settle(self, seconds: Optional[float] = None):
        """Give client-side scripts time to populate the page"""
        if seconds is None:
            seconds = self.config.get('settle_delay', 5.0)
        if seconds > 0:
            logger.debug(f"Waiting {seconds}s for dynamic content...")
            time.sleep(seconds)

    def find_elements(self, selector: str) -> List[WebElement]:
        """All elements matching a CSS selector, in document order"""
        return self.driver.find_elements(By.CSS_SELECTOR, selector)

    def has_rendered_box(self, element: WebElement) -> bool:
        try:
            rect = element.rect
        except WebDriverException as e:
            logger.debug(f"Bounding box unavailable: {e}")
            return False
        return bool(rect) and rect.get('width', 0) > 0 and rect.get('height', 0) > 0

    def scroll_into_view(self, element: WebElement):
        self.driver.execute_script("arguments[0].scrollIntoView({block: 'center', inline: 'nearest'});", element)

    def screenshot_element(self, element: WebElement) -> bytes:
        """PNG of the element's bounding box at device pixel density"""
        return element.screenshot_as_png

    def screenshot_viewport(self) -> bytes:
        return self.driver.get_screenshot_as_png()

    def screenshot_full_page(self) -> bytes:
        """
        PNG of the whole rendered document.

        The window is grown to the document height for the capture and
        restored afterwards.
        """
        width, height = self.window_size
        doc_width, doc_height = self.driver.execute_script(_DOCUMENT_SIZE_SCRIPT)
        self.driver.set_window_size(max(width, int(doc_width)), max(height, int(doc_height)))
        try:
            return self.driver.get_screenshot_as_png()
        finally:
            self.driver.set_window_size(width, height)
