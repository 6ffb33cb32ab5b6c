import os
import re
import copy
import shutil
import logging
import logging.handlers
import yaml
from pathlib import Path
from urllib.parse import urlparse
from typing import Dict, Any, List, Union
from dotenv import load_dotenv


DESKTOP_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36'
)

SCREENSHOT_PATTERN = re.compile(r'^screenshot-(\d+)\.png$')


def load_config(config_path: str = 'config.yaml') -> Dict[str, Any]:
    """Load configuration from YAML file with environment variable overrides."""
    # Load environment variables
    load_dotenv()

    config = get_default_config()
    try:
        if os.path.exists(config_path):
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = yaml.safe_load(f) or {}
            config = merge_config(config, file_config)
    except Exception as e:
        logging.warning(f"Could not load config from {config_path}: {e}")

    # Override with environment variables
    config = apply_env_overrides(config)

    return config


def get_default_config() -> Dict[str, Any]:
    """Get default configuration values."""
    return {
        'target': {
            'url': 'https://www.jiemian.com/',
            'selector': '.columns-lists'
        },
        'browser': {
            'headless': True,
            'user_agent': DESKTOP_USER_AGENT,
            'window_size': [1280, 800],
            'device_scale_factor': 2,
            'page_load_timeout': 60,
            'network_idle_timeout': 30,
            'settle_delay': 5.0,
            'element_delay': 0.5,
            'render_delay': 1.0,
            'chrome_binary_path': None,
            'chromedriver_path': None
        },
        'http': {
            'user_agent': DESKTOP_USER_AGENT,
            'timeout': 30,
            'accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8',
            'accept_language': 'en-US,en;q=0.9'
        },
        'capture': {
            'max_retries': 2,
            'retry_delay': 5.0
        },
        'pdf': {
            'output_dir': 'out',
            'output_filename': 'screenshots.pdf',
            'dpi': 300,
            'base_dpi': 72,
            'compress': False,
            'title': 'Screenshots',
            'author': 'screenshot2pdf'
        },
        'directories': {
            'screenshots_dir': os.path.join('out', 'screenshots'),
            'debug_html': 'page.html',
            'logs_dir': 'logs'
        },
        'logging': {
            'level': 'INFO',
            'log_to_file': True,
            'log_filename': 'screenshot2pdf.log',
            'rotate_logs': True,
            'max_bytes': 5 * 1024 * 1024,
            'backup_count': 3
        }
    }


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override values into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# Environment variable -> (config section, key, converter)
ENV_OVERRIDES = {
    'TARGET_URL': ('target', 'url', str),
    'TARGET_SELECTOR': ('target', 'selector', str),
    'USER_AGENT': ('browser', 'user_agent', str),
    'HEADLESS': ('browser', 'headless', _to_bool),
    'DEVICE_SCALE_FACTOR': ('browser', 'device_scale_factor', float),
    'PAGE_LOAD_TIMEOUT': ('browser', 'page_load_timeout', int),
    'SETTLE_DELAY': ('browser', 'settle_delay', float),
    'MAX_RETRIES': ('capture', 'max_retries', int),
    'PDF_OUTPUT_FILENAME': ('pdf', 'output_filename', str),
    'PDF_COMPRESS': ('pdf', 'compress', _to_bool),
    'LOG_LEVEL': ('logging', 'level', str),
}

# Third-party loggers that flood DEBUG output with wire traffic
NOISY_LOGGERS = ('selenium', 'urllib3', 'WDM', 'fontTools', 'weasyprint')

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration.

    Values that fail conversion are logged and leave the configured value
    in place. ``DEBUG_MODE`` forces the DEBUG level and wins over ``LOG_LEVEL``.
    """
    for env_var, (section, key, converter) in ENV_OVERRIDES.items():
        raw = os.getenv(env_var)
        if raw is None:
            continue
        try:
            config[section][key] = converter(raw)
        except (ValueError, TypeError) as e:
            logging.warning(f"Ignoring {env_var}={raw!r}: {e}")

    debug_mode = os.getenv('DEBUG_MODE')
    if debug_mode is not None and _to_bool(debug_mode):
        config['logging']['level'] = 'DEBUG'

    return config


def setup_logging(logging_config: Dict[str, Any], logs_dir: str = 'logs') -> logging.Logger:
    """Route log records to the console and, optionally, a rotating log file."""
    level = getattr(logging, str(logging_config.get('level', 'INFO')).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if logging_config.get('log_to_file', True):
        os.makedirs(logs_dir, exist_ok=True)
        log_path = os.path.join(logs_dir, logging_config.get('log_filename', 'screenshot2pdf.log'))
        if logging_config.get('rotate_logs', True):
            file_handler = logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=logging_config.get('max_bytes', 5 * 1024 * 1024),
                backupCount=logging_config.get('backup_count', 3),
                encoding='utf-8'
            )
        else:
            file_handler = logging.FileHandler(log_path, encoding='utf-8')
        # The file always keeps the full capture trace
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return root


def validate_url(url: str) -> bool:
    """True for an http(s) URL with a host, e.g. ``http://intranet/``."""
    try:
        parsed = urlparse(url.strip())
    except (AttributeError, ValueError):
        return False
    return parsed.scheme in ('http', 'https') and bool(parsed.hostname)


def format_file_size(size_bytes: int) -> str:
    """Format a byte count as B/KB/MB/GB with two decimals."""
    size = float(size_bytes)
    for unit in ('B', 'KB', 'MB'):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == 'B' else f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} GB"


def screenshot_filename(index: int) -> str:
    """Return the file name for the 1-based screenshot index."""
    return f"screenshot-{index}.png"


def list_screenshots(directory: Union[str, Path]) -> List[Path]:
    """List numbered screenshots in ascending numeric order.

    Names that do not match ``screenshot-<n>.png`` are ignored, so the
    diagnostic ``full-page.png`` never ends up in the listing.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []

    numbered = []
    for path in directory.iterdir():
        match = SCREENSHOT_PATTERN.match(path.name)
        if match and path.is_file():
            numbered.append((int(match.group(1)), path))

    return [path for _, path in sorted(numbered)]


def reset_directory(directory: Union[str, Path]) -> None:
    """Delete a directory tree and recreate it empty."""
    if os.path.exists(directory):
        shutil.rmtree(directory)
    os.makedirs(directory, exist_ok=True)
    logging.getLogger(__name__).debug(f"Reset directory: {directory}")
