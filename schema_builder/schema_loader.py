"""
Schema document files.

Reads and writes schema documents (any supported convention) as YAML or
JSON, chosen by file extension.
"""

import json
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List, Union
import logging

logger = logging.getLogger(__name__)

YAML_SUFFIXES = ('.yaml', '.yml')
JSON_SUFFIXES = ('.json',)


def load_schema_file(schema_path: Union[str, Path]) -> Optional[Dict[str, Any]]:
    """
    Load a schema document from a YAML or JSON file.

    Args:
        schema_path: Path to the schema file

    Returns:
        Schema document or None if loading fails
    """
    full_path = Path(schema_path)

    if not full_path.exists():
        logger.error(f"Schema file not found: {full_path}")
        return None

    suffix = full_path.suffix.lower()
    try:
        with open(full_path, 'r', encoding='utf-8') as f:
            if suffix in YAML_SUFFIXES:
                document = yaml.safe_load(f)
            elif suffix in JSON_SUFFIXES:
                document = json.load(f)
            else:
                logger.error(f"Unsupported schema file format: {full_path.suffix}")
                return None

        if not isinstance(document, dict):
            logger.error(f"Schema file {full_path} does not contain a mapping")
            return None

        logger.info(f"Successfully loaded schema: {full_path}")
        return document

    except yaml.YAMLError as e:
        logger.error(f"YAML parsing error in {full_path}: {e}")
        return None
    except json.JSONDecodeError as e:
        logger.error(f"JSON parsing error in {full_path}: {e}")
        return None
    except (IOError, OSError, UnicodeDecodeError) as e:
        logger.error(f"Error loading schema {full_path}: {e}")
        return None


def save_schema_file(document: Dict[str, Any], schema_path: Union[str, Path]) -> bool:
    """
    Write a schema document, YAML or JSON by extension.

    Returns:
        True if the file was written, False otherwise
    """
    full_path = Path(schema_path)
    suffix = full_path.suffix.lower()
    if suffix not in YAML_SUFFIXES + JSON_SUFFIXES:
        logger.error(f"Unsupported schema file format: {full_path.suffix}")
        return False

    try:
        full_path.parent.mkdir(parents=True, exist_ok=True)
        with open(full_path, 'w', encoding='utf-8') as f:
            if suffix in YAML_SUFFIXES:
                yaml.safe_dump(document, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
            else:
                json.dump(document, f, indent=2, ensure_ascii=False)
                f.write('\n')

        logger.info(f"Schema saved to {full_path}")
        return True

    except (IOError, OSError, TypeError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Failed to save schema to {full_path}: {e}")
        return False


def list_schema_files(directory: Union[str, Path]) -> List[str]:
    """
    List all schema files in a directory.

    Returns:
        Sorted list of schema filenames
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []

    schema_files = []
    for pattern in ['*.yaml', '*.yml', '*.json']:
        schema_files.extend([f.name for f in directory.glob(pattern)])

    return sorted(schema_files)
