"""
Tests for configuration loading and logging setup.
"""

import json
import logging

import pytest

import config
from logging_config import setup_logging


@pytest.fixture
def config_file(tmp_path):
    def _write(content):
        path = tmp_path / 'config.json'
        if isinstance(content, str):
            path.write_text(content, encoding='utf-8')
        else:
            path.write_text(json.dumps(content), encoding='utf-8')
        return path
    return _write


class TestConfigLoader:

    def test_missing_file_uses_defaults(self, tmp_path):
        loader = config.ConfigLoader(tmp_path / 'absent.json')
        assert loader.source is None
        assert loader['fps'] == 60
        assert loader['canvas'] == {'width': 800, 'height': 600}
        assert loader.slider('electrons')['initial'] == 100.0

    def test_override_is_merged_key_by_key(self, config_file):
        path = config_file({'fps': 30, 'sliders': {'electrons': {'initial': 42}}, 'seed': 9})
        loader = config.ConfigLoader(path)
        assert loader.source == path
        assert loader['fps'] == 30
        assert loader['seed'] == 9
        electrons = loader.slider('electrons')
        assert electrons['initial'] == 42
        assert electrons['bounds'] == [0.0, 300.0]
        assert loader.slider('volume') == config.DEFAULTS['sliders']['volume']

    def test_defaults_are_not_mutated(self, config_file):
        loader = config.ConfigLoader(config_file({'canvas': {'width': 1000}}))
        assert loader['canvas'] == {'width': 1000, 'height': 600}
        assert config.DEFAULTS['canvas'] == {'width': 800, 'height': 600}

    def test_malformed_file_is_ignored(self, config_file, caplog):
        path = config_file('{"fps": ')
        with caplog.at_level(logging.WARNING, logger='config'):
            loader = config.ConfigLoader(path)
        assert loader.source is None
        assert loader['fps'] == 60
        assert 'malformed' in caplog.text

    def test_non_object_top_level_is_ignored(self, config_file):
        assert config.load_config_file(config_file([1, 2, 3])) is None
        assert config.ConfigLoader(config_file('"text"')).source is None

    def test_mapping_helpers(self, tmp_path):
        loader = config.ConfigLoader(tmp_path / 'absent.json')
        assert 'units' in loader
        assert 'nope' not in loader
        assert loader.get('nope', 5) == 5


class TestSetupLogging:

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

    def test_console_and_file_handlers(self, tmp_path):
        log_file = tmp_path / 'demo.log'
        app_logger = setup_logging(logging.DEBUG, str(log_file))
        assert app_logger.name == 'drude'
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        logging.getLogger('simulation').debug("engine message")
        for handler in root.handlers:
            handler.flush()
        text = log_file.read_text(encoding='utf-8')
        assert 'drude - INFO - Logging initialized at DEBUG' in text
        assert str(log_file) in text
        assert 'simulation - DEBUG - engine message' in text

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1
