import json
from enum import Enum
from pathlib import Path
from typing import Optional, Type, TypeVar

import yaml
from pydantic import ValidationError

from ..exceptions import DecodeError
from .schema import ConfigModel

T = TypeVar("T", bound=ConfigModel)


class ConfigFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"


_SUFFIXES = {
    ".json": ConfigFormat.JSON,
    ".yml": ConfigFormat.YAML,
    ".yaml": ConfigFormat.YAML,
}


def detect_format(path) -> Optional[ConfigFormat]:
    return _SUFFIXES.get(Path(path).suffix)


def is_json_path(path) -> bool:
    return detect_format(path) is ConfigFormat.JSON


def decode(text: str, config_class: Type[T], fmt: ConfigFormat) -> T:
    """
    Parse *text* as *fmt* and validate it into *config_class*.
    Every failure is reported as DecodeError.
    """
    try:
        if fmt is ConfigFormat.JSON:
            data = json.loads(text) if text.strip() else None
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise DecodeError(f"Malformed {fmt.value.upper()}: {e}") from e
    except RecursionError as e:
        raise DecodeError(f"{fmt.value.upper()} document is nested too deeply") from e

    if data is None:
        # A half-saved (truncated) file must not look like an empty config
        raise DecodeError("Configuration document is empty")
    if not isinstance(data, dict):
        raise DecodeError(f"Configuration document must be a mapping, got {type(data).__name__}")

    try:
        return config_class.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"Invalid configuration for {config_class.__name__}: {e}") from e
    except RecursionError as e:
        raise DecodeError(f"Configuration for {config_class.__name__} is nested too deeply") from e


def decode_file(path, config_class: Type[T]) -> T:
    path = Path(path)
    fmt = detect_format(path)
    if fmt is None:
        raise DecodeError("Config file must be either JSON (.json) or YAML (.yml, .yaml)", path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise DecodeError(f"Could not read configuration file: {e}", path) from e
    try:
        return decode(text, config_class, fmt)
    except DecodeError as e:
        e.path = path
        raise


def encode(config: ConfigModel, fmt: ConfigFormat) -> str:
    data = config.model_dump(mode="json", by_alias=True)
    if fmt is ConfigFormat.JSON:
        return json.dumps(data, indent=2)
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
