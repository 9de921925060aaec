import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, field_validator

from .files.watch_service import Sensitivity

ENV_PREFIX = "RC_"


class WatchSettings(BaseModel):
    """
    Knobs for the watching machinery itself, read from RC_* environment
    variables (RC_SENSITIVITY=HIGH, RC_POLLING=true, RC_LOG_LEVEL=DEBUG).
    """
    sensitivity: Sensitivity = Sensitivity.MEDIUM
    polling: bool = False
    log_level: str = "INFO"

    @field_validator("sensitivity", mode="before")
    @classmethod
    def _sensitivity_by_name(cls, value):
        if isinstance(value, str):
            try:
                return Sensitivity[value.upper()]
            except KeyError:
                raise ValueError(f"Unknown sensitivity {value!r}, expected one of "
                                 f"{', '.join(s.name for s in Sensitivity)}") from None
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


def load_settings(environ: Optional[Mapping[str, str]] = None) -> WatchSettings:
    environ = os.environ if environ is None else environ
    return WatchSettings(**_get_env_overrides(environ))


def _get_env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides = {}
    for key, value in environ.items():
        if key.startswith(ENV_PREFIX):
            field = key[len(ENV_PREFIX):].lower()
            if field in WatchSettings.model_fields:
                overrides[field] = _type_cast(value)
    return overrides


def _type_cast(value: str) -> Any:
    if value.lower() in ("true", "yes"): return True
    if value.lower() in ("false", "no"): return False
    return value
