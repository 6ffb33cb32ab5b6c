"""
Test configuration and shared fixtures for screenshot2pdf tests
"""
import io
import os
import sys
import pytest
import tempfile
import shutil
from pathlib import Path
from unittest.mock import Mock
import requests
from requests.structures import CaseInsensitiveDict
from PIL import Image

# Make the project root importable so tests can use ``src.<module>``
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.utils import get_default_config


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests"""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


@pytest.fixture
def sample_config(temp_dir):
    """Default configuration pointed at the temp dir, with all waits disabled"""
    config = get_default_config()
    config['browser'].update({
        'settle_delay': 0,
        'element_delay': 0,
        'render_delay': 0,
        'network_idle_timeout': 1,
    })
    config['capture'].update({
        'max_retries': 2,
        'retry_delay': 0,
    })
    config['pdf']['output_dir'] = str(temp_dir / 'out')
    config['directories'].update({
        'screenshots_dir': str(temp_dir / 'out' / 'screenshots'),
        'debug_html': str(temp_dir / 'page.html'),
        'logs_dir': str(temp_dir / 'logs'),
    })
    config['logging']['log_to_file'] = False
    return config


@pytest.fixture
def make_png():
    """Factory encoding a solid-color PNG of the given size"""
    def _make_png(width: int = 40, height: int = 30, color=(200, 30, 30)) -> bytes:
        buffer = io.BytesIO()
        Image.new('RGB', (width, height), color).save(buffer, format='PNG')
        return buffer.getvalue()
    return _make_png


@pytest.fixture
def mock_response():
    """Create a mock HTTP response"""
    response = Mock(spec=requests.Response)
    response.status_code = 200
    response.encoding = 'utf-8'
    response.apparent_encoding = 'utf-8'
    response.text = """
    <html>
        <head><title>Test Page</title></head>
        <body>
            <div class="columns-lists first"><h2>Markets</h2><img src="/img/a.png"></div>
            <p>Unrelated content</p>
            <div class="columns-lists"><h2>Tech</h2></div>
        </body>
    </html>
    """
    response.headers = CaseInsensitiveDict({'Content-Type': 'text/html; charset=utf-8'})
    response.url = "https://example.com/"
    return response
