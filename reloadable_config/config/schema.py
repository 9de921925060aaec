from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict


class ConfigModel(BaseModel):
    """
    Base for configuration shapes managed by a ConfigurationStore.

    Subclasses declare their settings as pydantic fields and override
    default_config_paths() with the files to try, in order, when a store is
    initialized without explicit paths. Equality is pydantic's field-wise
    comparison, which is what the store uses to decide whether a reload
    actually changed anything. Instances are frozen: a new configuration
    replaces the old one, it is never edited in place.

    Settings that should default to something other than "unset" when left
    out of the file are best modelled as Optional with an accessor, e.g.

        chat_enabled: Optional[bool] = None

        def is_chat_enabled(self) -> bool:
            return self.chat_enabled is None or self.chat_enabled

    so the stored value still records that the file said nothing.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    @classmethod
    def default_config_paths(cls) -> List[Path]:
        raise NotImplementedError(f"{cls.__name__} does not declare default configuration paths")


class DocumentConfig(ConfigModel):
    """Schemaless configuration: every top-level key is kept as-is."""
    model_config = ConfigDict(extra="allow")

    @classmethod
    def default_config_paths(cls) -> List[Path]:
        return [Path.cwd() / "config.json", Path.cwd() / "config.yaml"]
