import logging
import time
from typing import Dict, Any

from selenium.common.exceptions import TimeoutException, WebDriverException
from tqdm import tqdm

try:
    from .browser import BrowserSession
    from .models import ElementCaptureResult
except ImportError:
    from browser import BrowserSession
    from models import ElementCaptureResult


class ElementScreenshotter:
    """Screenshots every element matching a selector on a live page."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.browser_config = config['browser']
        self.logger = logging.getLogger(__name__)

    def capture(self, url: str, selector: str) -> ElementCaptureResult:
        """Capture one PNG per element matching selector, in document order.

        Browser launch failures propagate as BrowserLaunchError. Anything
        that goes wrong once the session is up is logged and reported
        through the result's ``error`` field.
        """
        self.logger.info(f"Attempting browser capture of '{selector}' on {url}")

        with BrowserSession(self.browser_config) as browser:
            try:
                browser.open(url)
            except TimeoutException as e:
                self.logger.error(f"Navigation to {url} timed out: {e}")
                return ElementCaptureResult(error=f"navigation timeout: {e}")
            except WebDriverException as e:
                self.logger.error(f"Navigation to {url} failed: {e}")
                return ElementCaptureResult(error=f"navigation failed: {e}")

            try:
                browser.wait_for_page_ready()
                browser.settle()

                elements = browser.find_elements(selector)
                self.logger.info(f"Found {len(elements)} elements matching '{selector}'")

                if not elements:
                    self.logger.info("No elements found, taking full page screenshot for debugging")
                    return ElementCaptureResult(diagnostic_png=browser.screenshot_viewport())

                return ElementCaptureResult(images=self._capture_elements(browser, elements))

            except Exception as e:
                self.logger.error(f"Error during browser capture: {e}")
                return ElementCaptureResult(error=str(e))

    def _capture_elements(self, browser: BrowserSession, elements) -> list:
        """Screenshot elements one at a time; failed elements are skipped."""
        images = []
        element_delay = self.browser_config.get('element_delay', 0.5)

        pbar = tqdm(total=len(elements), desc="Capturing elements", unit="elements")
        try:
            for position, element in enumerate(elements, 1):
                try:
                    if not browser.has_rendered_box(element):
                        self.logger.debug(f"Element {position} has no rendered box, skipping")
                        continue

                    browser.scroll_into_view(element)
                    if element_delay > 0:
                        time.sleep(element_delay)

                    images.append(browser.screenshot_element(element))
                    self.logger.debug(f"Captured element {position} as image {len(images)}")
                except WebDriverException as e:
                    self.logger.warning(f"Screenshot of element {position} failed, skipping: {e}")
                finally:
                    pbar.update(1)
        finally:
            pbar.close()

        self.logger.info(f"Captured {len(images)} of {len(elements)} elements")
        return images
