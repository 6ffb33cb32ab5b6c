import html
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, Any, List, Optional

import requests
from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError
from tqdm import tqdm

try:
    from .browser import BrowserSession
    from .models import ElementCaptureResult
except ImportError:
    from browser import BrowserSession
    from models import ElementCaptureResult


FRAGMENT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <base href="{base_url}">
    <title>Element {index}</title>
    <style>
        html, body {{ margin: 0; padding: 0; background: #fff; }}
        body {{
            -webkit-font-smoothing: antialiased;
            -moz-osx-font-smoothing: grayscale;
            text-rendering: optimizeLegibility;
        }}
        .captured-fragment {{ padding: 10px; }}
    </style>
</head>
<body>
    <div class="{css_class}">{inner_html}</div>
</body>
</html>
"""


class FallbackFetcher:
    """Fetches raw HTML and re-renders matching fragments as standalone pages."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.http_config = config['http']
        self.browser_config = config['browser']
        self.logger = logging.getLogger(__name__)

        self.session = requests.Session()
        # Ignore proxy settings from the environment
        self.session.trust_env = False
        self.session.headers.update({
            'User-Agent': self.http_config['user_agent'],
            'Accept': self.http_config.get('accept', 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8'),
            'Accept-Language': self.http_config.get('accept_language', 'en-US,en;q=0.9'),
            'Cache-Control': 'no-cache',
            'Pragma': 'no-cache',
        })

    def _fetch_page(self, url: str) -> Optional[str]:
        """Fetch url once; returns the decoded body or None on any failure."""
        try:
            self.logger.info(f"Fetching HTML from {url}")
            response = self.session.get(
                url,
                timeout=self.http_config.get('timeout', 30),
                allow_redirects=True
            )
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Failed to fetch {url}: {e}")
            return None

        if response.status_code != 200:
            self.logger.error(f"Failed to fetch HTML: status code {response.status_code}")
            return None

        # requests assumes ISO-8859-1 when text/html declares no charset
        content_type = response.headers.get('Content-Type', '')
        if not response.encoding or 'charset' not in content_type.lower():
            response.encoding = response.apparent_encoding

        return response.text

    def build_fragment_document(self, node: Tag, index: int, base_url: str) -> str:
        """Wrap a node's inner markup in a minimal standalone HTML page."""
        classes = node.get('class') or []
        css_class = ' '.join(['captured-fragment'] + list(classes))
        return FRAGMENT_TEMPLATE.format(
            base_url=html.escape(base_url, quote=True),
            index=index,
            css_class=html.escape(css_class, quote=True),
            inner_html=node.decode_contents(),
        )

    def capture(self, url: str, selector: str) -> ElementCaptureResult:
        """Capture one PNG per fragment matching selector in the fetched HTML."""
        self.logger.info(f"Attempting HTTP fallback capture of '{selector}' on {url}")

        page_html = self._fetch_page(url)
        if page_html is None:
            return ElementCaptureResult(error=f"could not fetch {url}")

        soup = BeautifulSoup(page_html, 'html.parser')
        try:
            nodes = soup.select(selector)
        except (SelectorSyntaxError, NotImplementedError) as e:
            # soupsieve rejects pseudo-elements such as ::before
            self.logger.error(f"Invalid selector '{selector}': {e}")
            return ElementCaptureResult(error=str(e))

        self.logger.info(f"Found {len(nodes)} fragments matching '{selector}' in fetched HTML")

        if not nodes:
            return ElementCaptureResult(raw_html=page_html)

        with BrowserSession(self.browser_config, lightweight=True) as browser:
            images = self._render_fragments(browser, nodes, url)

        self.logger.info(f"Rendered {len(images)} of {len(nodes)} fragments")
        return ElementCaptureResult(images=images)

    def _render_fragments(self, browser: BrowserSession, nodes: List[Tag], base_url: str) -> List[bytes]:
        images = []
        render_delay = self.browser_config.get('render_delay', 1.0)

        for position, node in enumerate(tqdm(nodes, desc="Rendering fragments", unit="fragments"), 1):
            document = self.build_fragment_document(node, position, base_url)
            fd, temp_path = tempfile.mkstemp(prefix=f'fragment-{position}-', suffix='.html')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(document)

                browser.open(Path(temp_path).as_uri())
                if render_delay > 0:
                    time.sleep(render_delay)

                images.append(browser.screenshot_full_page())
                self.logger.debug(f"Rendered fragment {position} as image {len(images)}")
            except Exception as e:
                self.logger.warning(f"Rendering fragment {position} failed, skipping: {e}")
            finally:
                try:
                    os.remove(temp_path)
                except OSError as e:
                    self.logger.warning(f"Could not remove temporary file {temp_path}: {e}")

        return images

    def cleanup(self):
        """Clean up resources."""
        self.session.close()
