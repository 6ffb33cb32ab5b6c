"""
Unit tests for configuration and file helpers
"""
import logging
import logging.handlers
import pytest
from pathlib import Path

from src.utils import (
    load_config, get_default_config, merge_config, list_screenshots,
    reset_directory, screenshot_filename, validate_url, apply_env_overrides,
    setup_logging, format_file_size
)


class TestConfig:
    """Test configuration loading and overrides"""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for var in ('TARGET_URL', 'TARGET_SELECTOR', 'USER_AGENT', 'HEADLESS',
                    'DEVICE_SCALE_FACTOR', 'PAGE_LOAD_TIMEOUT', 'SETTLE_DELAY', 'MAX_RETRIES',
                    'PDF_OUTPUT_FILENAME', 'PDF_COMPRESS', 'LOG_LEVEL', 'DEBUG_MODE'):
            monkeypatch.delenv(var, raising=False)
        monkeypatch.setattr('src.utils.load_dotenv', lambda: None)

    def test_defaults_when_file_missing(self, temp_dir):
        config = load_config(str(temp_dir / 'missing.yaml'))

        assert config == get_default_config()
        assert config['pdf']['compress'] is False
        assert config['pdf']['dpi'] / config['pdf']['base_dpi'] == pytest.approx(300 / 72)

    def test_partial_file_merged_with_defaults(self, temp_dir):
        config_file = temp_dir / 'config.yaml'
        config_file.write_text("target:\n  selector: article.card\nbrowser:\n  device_scale_factor: 3\n")

        config = load_config(str(config_file))

        assert config['target']['selector'] == 'article.card'
        assert config['target']['url'] == get_default_config()['target']['url']
        assert config['browser']['device_scale_factor'] == 3
        assert config['browser']['window_size'] == [1280, 800]

    def test_env_overrides(self, temp_dir, monkeypatch):
        monkeypatch.setenv('TARGET_URL', 'https://example.org/news')
        monkeypatch.setenv('TARGET_SELECTOR', '.story')
        monkeypatch.setenv('HEADLESS', 'false')
        monkeypatch.setenv('MAX_RETRIES', '4')
        monkeypatch.setenv('DEBUG_MODE', 'true')

        config = load_config(str(temp_dir / 'missing.yaml'))

        assert config['target']['url'] == 'https://example.org/news'
        assert config['target']['selector'] == '.story'
        assert config['browser']['headless'] is False
        assert config['capture']['max_retries'] == 4
        assert config['logging']['level'] == 'DEBUG'

    def test_invalid_env_value_ignored(self, temp_dir, monkeypatch):
        monkeypatch.setenv('MAX_RETRIES', 'lots')

        config = load_config(str(temp_dir / 'missing.yaml'))

        assert config['capture']['max_retries'] == get_default_config()['capture']['max_retries']

    def test_merge_does_not_mutate_base(self):
        base = {'a': {'b': 1, 'c': 2}}

        merged = merge_config(base, {'a': {'b': 5}})

        assert merged == {'a': {'b': 5, 'c': 2}}
        assert base == {'a': {'b': 1, 'c': 2}}


class TestScreenshotFiles:
    """Test numbered screenshot naming and listing"""

    def test_filename(self):
        assert screenshot_filename(1) == 'screenshot-1.png'
        assert screenshot_filename(12) == 'screenshot-12.png'

    def test_numeric_order(self, temp_dir):
        for n in (10, 2, 1, 9):
            (temp_dir / screenshot_filename(n)).write_bytes(b'x')
        (temp_dir / 'full-page.png').write_bytes(b'x')
        (temp_dir / 'screenshot-.png').write_bytes(b'x')

        names = [path.name for path in list_screenshots(temp_dir)]

        assert names == ['screenshot-1.png', 'screenshot-2.png', 'screenshot-9.png', 'screenshot-10.png']

    def test_missing_directory(self, temp_dir):
        assert list_screenshots(temp_dir / 'nope') == []

    def test_reset_directory(self, temp_dir):
        target = temp_dir / 'shots'
        (target / 'nested').mkdir(parents=True)
        (target / 'screenshot-1.png').write_bytes(b'x')

        reset_directory(target)

        assert target.is_dir()
        assert list(target.iterdir()) == []


class TestValidateUrl:
    def test_valid(self):
        assert validate_url('https://www.jiemian.com/') is True
        assert validate_url('http://localhost:8000/page') is True

    def test_invalid(self):
        assert validate_url('ftp://example.com') is False
        assert validate_url('www.example.com') is False

    def test_long_tld_and_intranet_hosts(self):
        assert validate_url('https://news.technology/') is True
        assert validate_url('http://intranet/') is True
        assert validate_url('http://10.0.0.5:8080/feed?page=2') is True

    def test_missing_host(self):
        assert validate_url('https://') is False
        assert validate_url('http:///path-only') is False


class TestEnvAndLogging:
    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_debug_mode_wins_over_log_level(self, monkeypatch):
        monkeypatch.setenv('LOG_LEVEL', 'ERROR')
        monkeypatch.setenv('DEBUG_MODE', '1')

        config = apply_env_overrides(get_default_config())

        assert config['logging']['level'] == 'DEBUG'

    def test_debug_mode_off_keeps_log_level(self, monkeypatch):
        monkeypatch.setenv('LOG_LEVEL', 'ERROR')
        monkeypatch.setenv('DEBUG_MODE', 'false')

        config = apply_env_overrides(get_default_config())

        assert config['logging']['level'] == 'ERROR'

    def test_setup_logging_writes_rotating_file(self, temp_dir):
        logs_dir = temp_dir / 'logs'
        config = dict(get_default_config()['logging'], level='DEBUG')

        root = setup_logging(config, str(logs_dir))
        logging.getLogger('src.orchestrator').info('capture started')

        file_handlers = [h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].backupCount == 3
        file_handlers[0].flush()
        assert 'capture started' in (logs_dir / 'screenshot2pdf.log').read_text(encoding='utf-8')
        assert logging.getLogger('selenium').level == logging.WARNING

    def test_format_file_size(self):
        assert format_file_size(0) == '0 B'
        assert format_file_size(512) == '512 B'
        assert format_file_size(2048) == '2.00 KB'
        assert format_file_size(5 * 1024 * 1024) == '5.00 MB'
