"""
Configuration loading utilities for the schema builder.

This module loads the YAML configuration with fallback to defaults and
applies its logging section.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Union
import logging
from copy import deepcopy

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_CONFIG_PATH = Path("config.yaml")


def deep_merge(base_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, with update_dict taking precedence.

    Args:
        base_dict: Base dictionary (defaults)
        update_dict: Dictionary to merge in (user config)

    Returns:
        Merged dictionary
    """
    result = deepcopy(base_dict)

    for key, value in update_dict.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)

    return result


def get_default_config() -> Dict[str, Any]:
    """
    Get default configuration.

    Returns:
        Dictionary with default configuration
    """
    return {
        'app': {
            'name': 'Schema Builder',
            'version': '1.0.0'
        },
        'logging': {
            'level': 'INFO',
            'format': DEFAULT_LOG_FORMAT
        },
        'editor': {
            'validation': True,
            'history_limit': 50,
            'hide_id': False,
            'include_hidden_in_settings': True
        },
        'schema': {
            'default_schema': None
        }
    }


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load the configuration file merged over get_default_config().

    A missing, empty or unreadable file is not an error: the problem is
    logged and the defaults are used.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    defaults = get_default_config()

    user_config = _read_yaml_mapping(path)
    if user_config is None:
        logger.info("Using default configuration")
        return defaults

    logger.info(f"Loaded configuration from {path}")
    return deep_merge(defaults, user_config)


def _read_yaml_mapping(path: Path) -> Optional[Dict[str, Any]]:
    if not path.is_file():
        logger.warning(f"Configuration file not found: {path}")
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"YAML parsing error in {path}: {e}")
        return None
    except OSError as e:
        logger.error(f"Cannot read configuration file {path}: {e}")
        return None

    if content is None:
        logger.warning(f"Configuration file is empty: {path}")
        return None
    if not isinstance(content, dict):
        logger.error(f"Configuration file {path} holds a {type(content).__name__}, expected a mapping")
        return None
    return content


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate configuration structure and required fields.

    Args:
        config: Configuration dictionary to validate

    Returns:
        True if configuration is valid, False otherwise
    """
    required_sections = ['app', 'logging', 'editor', 'schema']

    for section in required_sections:
        if not isinstance(config.get(section), dict):
            logger.warning(f"Missing required configuration section: {section}")
            return False

    app = config['app']
    if 'name' not in app or 'version' not in app:
        logger.warning("Missing required app configuration (name or version)")
        return False

    level = config['logging'].get('level', 'INFO')
    if not isinstance(level, str) or level.upper() not in _LEVELS:
        logger.warning(f"Unknown logging level: {level}")
        return False

    editor = config['editor']
    for flag in ('validation', 'hide_id', 'include_hidden_in_settings'):
        if flag in editor and not isinstance(editor[flag], bool):
            logger.warning(f"editor.{flag} must be true or false")
            return False

    if 'history_limit' in editor:
        limit = editor['history_limit']
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            logger.warning("history_limit must be a non-negative integer")
            return False

    default_schema = config['schema'].get('default_schema')
    if default_schema is not None and not isinstance(default_schema, str):
        logger.warning("schema.default_schema must be a file path")
        return False

    return True


def save_config(config: Dict[str, Any], config_path: Optional[Union[str, Path]] = None) -> bool:
    """Write a configuration as YAML, keeping section order. Returns False on failure."""
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    try:
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to save configuration to {path}: {e}")
        return False

    logger.info(f"Configuration saved to {path}")
    return True


def get_config_value(config: Dict[str, Any], section: str, key: str, default: Any = None) -> Any:
    """
    Get a specific configuration value.

    Args:
        config: Configuration dictionary
        section: Configuration section (e.g., 'editor', 'logging')
        key: Configuration key within section
        default: Default value if not found

    Returns:
        Configuration value or default
    """
    section_values = config.get(section)
    if not isinstance(section_values, dict):
        return default
    return section_values.get(key, default)


_LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL
}


def get_logging_level(level_str: Any) -> int:
    """Map string logging level to logging constant."""
    if not isinstance(level_str, str):
        return logging.INFO
    return _LEVELS.get(level_str.upper(), logging.INFO)


def configure_logging(config: Dict[str, Any]) -> int:
    """
    Apply the logging section of a configuration.

    Returns:
        The logging level that was configured
    """
    level_str = get_config_value(config, 'logging', 'level', 'INFO')
    log_format = get_config_value(config, 'logging', 'format', DEFAULT_LOG_FORMAT)
    level = get_logging_level(level_str)
    logging.basicConfig(level=level, format=log_format)
    logger.info(f"Logging configured to level: {level_str}")
    return level
