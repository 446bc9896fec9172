"""
Unit tests for config_loader module.
"""

import logging
from pathlib import Path

import pytest

from schema_builder.config_loader import (
    configure_logging,
    deep_merge,
    get_config_value,
    get_default_config,
    get_logging_level,
    load_config,
    save_config,
    validate_config,
)
from test_fixtures import write_config


class TestDeepMerge:
    """Test cases for deep_merge."""

    def test_nested_values_merged(self):
        """Test that nested sections are merged key by key."""
        base = {'editor': {'validation': True, 'history_limit': 50}, 'app': {'name': 'x'}}
        update = {'editor': {'history_limit': 5}}

        result = deep_merge(base, update)

        assert result == {'editor': {'validation': True, 'history_limit': 5}, 'app': {'name': 'x'}}
        assert base['editor']['history_limit'] == 50

    def test_non_dict_replaces(self):
        """Test that scalar values replace whole sections."""
        assert deep_merge({'a': {'b': 1}}, {'a': 2}) == {'a': 2}


class TestLoadConfig:
    """Test cases for load_config."""

    def test_valid_config(self, tmp_path):
        """Test loading a valid configuration file."""
        path = write_config(tmp_path, {'editor': {'hide_id': True}, 'logging': {'level': 'DEBUG'}})

        config = load_config(path)

        assert config['editor']['hide_id'] is True
        assert config['editor']['history_limit'] == 50
        assert config['logging']['level'] == 'DEBUG'
        assert config['app']['name'] == 'Schema Builder'
        assert validate_config(config)

    def test_missing_file(self, tmp_path, caplog):
        """Test that a missing file yields the defaults."""
        with caplog.at_level(logging.WARNING, logger='schema_builder.config_loader'):
            config = load_config(tmp_path / "nope.yaml")

        assert config == get_default_config()
        assert "Configuration file not found" in caplog.text

    def test_empty_file(self, tmp_path, caplog):
        """Test that an empty file yields the defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("", encoding='utf-8')

        with caplog.at_level(logging.WARNING, logger='schema_builder.config_loader'):
            config = load_config(path)

        assert config == get_default_config()
        assert "Configuration file is empty" in caplog.text

    def test_invalid_yaml(self, tmp_path, caplog):
        """Test that unparsable YAML yields the defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("editor: [unclosed\n", encoding='utf-8')

        with caplog.at_level(logging.ERROR, logger='schema_builder.config_loader'):
            config = load_config(path)

        assert config == get_default_config()
        assert "YAML parsing error" in caplog.text

    def test_non_mapping(self, tmp_path):
        """Test that a top-level list yields the defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("- editor\n- schema\n", encoding='utf-8')

        assert load_config(path) == get_default_config()

    def test_repository_config_is_valid(self):
        """Test the shipped config.yaml."""
        config = load_config(Path(__file__).parent / "config.yaml")

        assert validate_config(config)
        assert config == get_default_config()


class TestValidateConfig:
    """Test cases for validate_config."""

    def test_defaults_valid(self):
        """Test that the default configuration validates."""
        assert validate_config(get_default_config())

    @pytest.mark.parametrize("section,key,value", [
        ('logging', 'level', 'LOUD'),
        ('logging', 'level', 10),
        ('editor', 'validation', 'yes'),
        ('editor', 'history_limit', -1),
        ('editor', 'history_limit', True),
        ('editor', 'history_limit', 2.5),
        ('schema', 'default_schema', 42),
    ])
    def test_invalid_values(self, section, key, value):
        """Test the rejected option values."""
        config = get_default_config()
        config[section][key] = value

        assert not validate_config(config)

    def test_missing_section(self):
        """Test that every section is required."""
        config = get_default_config()
        del config['editor']

        assert not validate_config(config)

    def test_missing_app_name(self):
        """Test that the app section needs a name."""
        config = get_default_config()
        del config['app']['name']

        assert not validate_config(config)


class TestConfigHelpers:
    """Test cases for save_config, get_config_value and logging helpers."""

    def test_save_and_reload(self, tmp_path):
        """Test that a saved configuration loads back unchanged."""
        config = get_default_config()
        config['editor']['history_limit'] = 7
        path = tmp_path / "saved.yaml"

        assert save_config(config, path)
        assert load_config(path) == config

    def test_save_to_missing_directory(self, tmp_path):
        """Test that write failures return False."""
        assert save_config(get_default_config(), tmp_path / "missing" / "config.yaml") is False

    def test_get_config_value(self):
        """Test section/key lookup with defaults."""
        config = get_default_config()

        assert get_config_value(config, 'editor', 'history_limit') == 50
        assert get_config_value(config, 'editor', 'unknown', 'fallback') == 'fallback'
        assert get_config_value(config, 'nope', 'key', 3) == 3

    @pytest.mark.parametrize("level,expected", [
        ('DEBUG', logging.DEBUG),
        ('warning', logging.WARNING),
        ('CRITICAL', logging.CRITICAL),
        ('LOUD', logging.INFO),
        (None, logging.INFO),
    ])
    def test_get_logging_level(self, level, expected):
        """Test level name mapping."""
        assert get_logging_level(level) == expected

    def test_configure_logging(self):
        """Test that the configured level is returned."""
        config = get_default_config()
        config['logging']['level'] = 'ERROR'

        assert configure_logging(config) == logging.ERROR
