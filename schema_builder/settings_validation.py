"""
Pydantic validation of settings-panel values.

A settings value is an entry's own schema as edited in the side panel, plus
its '$id'. Unknown keywords are allowed; the common keywords are type
checked so that obviously broken edits never reach the flat map.
"""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import logging

logger = logging.getLogger(__name__)


class EntrySettings(BaseModel):
    """Common keywords of an entry schema as shown in the settings panel."""

    model_config = ConfigDict(extra='allow', populate_by_name=True)

    id: Optional[str] = Field(None, alias='$id')
    type: Optional[Union[str, List[str]]] = None
    title: Optional[str] = None
    description: Optional[str] = None
    widget: Optional[str] = None
    format: Optional[str] = None
    required: Optional[Union[bool, List[str]]] = None
    hidden: Optional[Union[bool, str]] = None
    disabled: Optional[Union[bool, str]] = None
    readOnly: Optional[Union[bool, str]] = None
    props: Optional[Dict[str, Any]] = None
    enum: Optional[List[Any]] = None
    enumNames: Optional[List[Any]] = None
    min: Optional[float] = None
    max: Optional[float] = None

    @field_validator('id')
    @classmethod
    def id_is_path(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.startswith('#'):
            raise ValueError("'$id' must start with '#'")
        return v

    @field_validator('enumNames')
    @classmethod
    def names_match_enum(cls, v: Optional[List[Any]], info) -> Optional[List[Any]]:
        enum = info.data.get('enum')
        if v is not None and enum is not None and len(v) != len(enum):
            raise ValueError(f"expected {len(enum)} names for {len(enum)} enum values, got {len(v)}")
        return v

    @field_validator('max')
    @classmethod
    def max_not_below_min(cls, v: Optional[float], info) -> Optional[float]:
        low = info.data.get('min')
        if v is not None and low is not None and v < low:
            raise ValueError(f"max ({v}) must not be below min ({low})")
        return v


def validate_settings(value: Dict[str, Any]) -> List[str]:
    """
    Validate a settings value and return readable error messages.

    Returns:
        List of "field -> message" strings, empty when the value is valid
    """
    try:
        EntrySettings.model_validate(value)
        return []
    except ValidationError as e:
        error_messages = []
        for error in e.errors():
            field_path = ' -> '.join(str(loc) for loc in error.get('loc', []))
            error_messages.append(f"{field_path}: {error.get('msg')}")
        return error_messages


def collect_error_fields(value: Any) -> List[Dict[str, Any]]:
    """
    Validate a settings value and group the errors per field.

    Returns:
        List of {'name': field, 'errors': [messages]} in first-seen order;
        errors without a field location are reported under '#'
    """
    if not isinstance(value, dict):
        return [{'name': '#', 'errors': [f"settings must be an object, got {type(value).__name__}"]}]

    try:
        EntrySettings.model_validate(value)
        return []
    except ValidationError as e:
        grouped: Dict[str, List[str]] = {}
        for error in e.errors():
            loc = error.get('loc') or ('#',)
            grouped.setdefault(str(loc[0]), []).append(error.get('msg'))
        logger.debug(f"Settings validation failed for fields {list(grouped)}")
        return [{'name': name, 'errors': messages} for name, messages in grouped.items()]
