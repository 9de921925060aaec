"""Hot-reloadable configuration objects backed by a watched JSON or YAML file."""
from .config.decoder import ConfigFormat, decode, decode_file, detect_format, encode
from .config.schema import ConfigModel, DocumentConfig
from .config.store import ConfigurationStore
from .exceptions import DecodeError, InvalidArgumentError, ReloadableConfigError, WatchServiceClosedError
from .files.watch_service import EventKind, Sensitivity, WatchdogWatchService, WatchEvent, WatchKey, WatchService
from .files.watcher import FileWatcher, WatchTarget
from .reloadable import FunctionSubscriber, Reloadable
from .settings import WatchSettings, load_settings

__version__ = "0.1.0"

__all__ = [
    "ConfigFormat",
    "ConfigModel",
    "ConfigurationStore",
    "DecodeError",
    "DocumentConfig",
    "EventKind",
    "FileWatcher",
    "FunctionSubscriber",
    "InvalidArgumentError",
    "Reloadable",
    "ReloadableConfigError",
    "Sensitivity",
    "WatchEvent",
    "WatchKey",
    "WatchService",
    "WatchServiceClosedError",
    "WatchSettings",
    "WatchTarget",
    "WatchdogWatchService",
    "decode",
    "decode_file",
    "detect_format",
    "encode",
    "load_settings",
]
