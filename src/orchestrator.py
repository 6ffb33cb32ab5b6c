import logging
import time
from pathlib import Path
from typing import Dict, Any, List, Optional

try:
    from .capture_driver import ElementScreenshotter
    from .fallback_fetcher import FallbackFetcher
    from .models import CaptureTarget, CaptureResult, ElementCaptureResult
    from .utils import reset_directory, screenshot_filename
except ImportError:
    from capture_driver import ElementScreenshotter
    from fallback_fetcher import FallbackFetcher
    from models import CaptureTarget, CaptureResult, ElementCaptureResult
    from utils import reset_directory, screenshot_filename


FULL_PAGE_FILENAME = 'full-page.png'


class CaptureOrchestrator:
    """Runs the browser capture, falls back to HTTP fetch + re-render, and
    persists whatever screenshots either tier produced."""

    def __init__(self, config: Dict[str, Any], target: CaptureTarget,
                 screenshotter: Optional[ElementScreenshotter] = None,
                 fallback: Optional[FallbackFetcher] = None):
        self.config = config
        self.target = target
        self.screenshots_dir = Path(config['directories']['screenshots_dir'])
        self.debug_html_path = Path(config['directories']['debug_html'])
        self.max_retries = max(0, int(config['capture'].get('max_retries', 0)))
        self.retry_delay = float(config['capture'].get('retry_delay', 0))
        self.screenshotter = screenshotter or ElementScreenshotter(config)
        self.fallback = fallback or FallbackFetcher(config)
        self.logger = logging.getLogger(__name__)

    def capture(self, target: Optional[CaptureTarget] = None) -> CaptureResult:
        """Capture the target's elements into the screenshot directory.

        Returns a CaptureResult with ``succeeded=False`` when neither tier
        produced an image. BrowserLaunchError is not caught here.
        """
        target = target or self.target

        reset_directory(self.screenshots_dir)
        self.logger.info(f"Capturing '{target.selector}' from {target.url} into {self.screenshots_dir}")

        primary = self._capture_with_retries(target)

        if primary.diagnostic_png:
            diagnostic_path = self.screenshots_dir / FULL_PAGE_FILENAME
            diagnostic_path.write_bytes(primary.diagnostic_png)
            self.logger.info(f"Full page screenshot saved as {diagnostic_path} for debugging")

        if primary.images:
            count = self._persist(primary.images)
            self.logger.info(f"All {count} screenshots taken successfully with browser capture")
            return CaptureResult(succeeded=True, count=count, source='browser')

        self.logger.info("Browser capture produced no screenshots, trying HTTP fallback...")
        secondary = self.fallback.capture(target.url, target.selector)

        if secondary.raw_html is not None:
            self.debug_html_path.parent.mkdir(parents=True, exist_ok=True)
            self.debug_html_path.write_text(secondary.raw_html, encoding='utf-8')
            self.logger.info(f"Saved HTML to {self.debug_html_path} for debugging")

        if secondary.images:
            count = self._persist(secondary.images)
            self.logger.info(f"All {count} screenshots taken successfully with HTTP fallback")
            return CaptureResult(succeeded=True, count=count, source='fallback')

        self.logger.warning("Both approaches failed. Unable to take screenshots.")
        return CaptureResult(succeeded=False, count=0, source=None)

    def _capture_with_retries(self, target: CaptureTarget) -> ElementCaptureResult:
        """Retry failed browser attempts; zero matches is a final answer."""
        attempts = self.max_retries + 1
        result = ElementCaptureResult()

        for attempt in range(1, attempts + 1):
            self.logger.info(f"Browser capture attempt {attempt}/{attempts}")
            result = self.screenshotter.capture(target.url, target.selector)
            if not result.failed:
                return result

            if attempt < attempts:
                self.logger.warning(f"Attempt {attempt} failed ({result.error}), retrying in {self.retry_delay}s")
                time.sleep(self.retry_delay)

        self.logger.warning(f"Browser capture failed after {attempts} attempts")
        return result

    def _persist(self, images: List[bytes]) -> int:
        """Write images as screenshot-1..N.png in the order given."""
        for index, image in enumerate(images, 1):
            path = self.screenshots_dir / screenshot_filename(index)
            path.write_bytes(image)
            self.logger.info(f"Saved {path}")
        return len(images)

    def cleanup(self):
        """Clean up resources."""
        self.fallback.cleanup()
