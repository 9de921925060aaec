import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from ..exceptions import DecodeError, InvalidArgumentError
from ..files.watch_service import Sensitivity, WatchdogWatchService, WatchService
from ..files.watcher import FileWatcher
from ..reloadable import Reloadable
from ..settings import WatchSettings, load_settings
from .decoder import decode_file, is_json_path
from .schema import ConfigModel

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=ConfigModel)

EMPTY_CONFIG = "{}\n"


class ConfigurationStore(Generic[T]):
    """
    Holds the live instance of a configuration class and keeps it in sync
    with its file on disk.

    initialize() picks the file, loads it and starts a FileWatcher on a
    background thread; from then on every change to the file goes through
    reload(), which swaps the held configuration and notifies subscribers
    only when the new one differs from the old one. A bad edit never evicts
    a good configuration.

    Always go through get() instead of keeping the returned object around,
    it is replaced whenever the file changes.
    """
    WATCHER_JOIN_TIMEOUT = 5.0

    def __init__(
        self,
        config_class: Type[T],
        default_paths: Optional[Callable[[], Sequence[Path]]] = None,
        *,
        watch_service_factory: Optional[Callable[[], WatchService]] = None,
        sensitivity: Optional[Sensitivity] = None,
        settings: Optional[WatchSettings] = None,
    ):
        self.config_class = config_class
        self._default_paths = default_paths or config_class.default_config_paths
        if settings is None and (sensitivity is None or watch_service_factory is None):
            settings = load_settings()
        self._settings = settings
        self._sensitivity = sensitivity or settings.sensitivity
        self._watch_service_factory = watch_service_factory or (
            lambda: WatchdogWatchService(polling=self._settings.polling)
        )

        self._config: Optional[T] = None
        self._config_file: Optional[Path] = None
        self._file_watcher: Optional[FileWatcher] = None
        # Keyed by id(): listeners are distinct by identity, not equality
        self._subscribers: Dict[int, Reloadable] = {}

        self._lock = threading.RLock()
        self._reload_lock = threading.RLock()
        self._init_lock = threading.Lock()

    def get(self) -> Optional[T]:
        with self._lock:
            return self._config

    @property
    def watched_file(self) -> Optional[Path]:
        return self._config_file

    @property
    def file_watcher(self) -> Optional[FileWatcher]:
        return self._file_watcher

    def initialize(self, config_files: Optional[Sequence] = None):
        with self._init_lock:
            if self.get() is not None:
                return

            if config_files is None:
                config_files = self._default_paths()
            candidates = [Path(p) for p in config_files or ()]
            if not candidates:
                raise InvalidArgumentError(f"No configuration paths given for {self.config_class.__name__}")

            config_file = self._select_config_file(candidates)
            config = self._load_config_from_file(config_file)
            if config is None:
                logger.warning("Loading file %s failed, configs will not be hot-reloaded or respected", config_file)
                return

            with self._lock:
                self._config = config
                self._config_file = config_file
            logger.info("Loaded %s from %s", self.config_class.__name__, config_file)
            self._start_watching(config_file)

    def _select_config_file(self, candidates: List[Path]) -> Path:
        for candidate in candidates:
            if candidate.exists():
                return candidate

        config_file = next((c for c in candidates if is_json_path(c)), candidates[0])
        self._create_config_file(config_file)
        return config_file

    def _create_config_file(self, config_file: Path):
        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(config_file, "x", encoding="utf-8") as f:
                f.write(EMPTY_CONFIG)
            logger.info("Empty config written to %s", config_file)
        except OSError as e:
            logger.error("Could not create or write to config file %s: %s", config_file, e)

    def _start_watching(self, config_file: Path):
        watch_service = self._watch_service_factory()
        try:
            watcher = FileWatcher(config_file, [self], watch_service, self._sensitivity)
        except (OSError, InvalidArgumentError) as e:
            watch_service.close()
            logger.error("Could not watch %s, configuration will not be hot-reloaded: %s", config_file, e)
            return
        self._file_watcher = watcher
        watcher.start()

    def _load_config_from_file(self, config_file: Path) -> Optional[T]:
        try:
            return decode_file(config_file, self.config_class)
        except DecodeError as e:
            logger.error("Could not load configuration: %s", e)
            return None

    def reload(self):
        """Re-read the watched file; swap and notify only on a real change."""
        config_file = self._config_file
        if config_file is None:
            logger.warning("reload() called before %s was initialized", self.config_class.__name__)
            return

        with self._reload_lock:
            new_config = self._load_config_from_file(config_file)
            if new_config is None:
                return
            with self._lock:
                if new_config == self._config:
                    logger.debug("%s reloaded without changes", config_file)
                    return
                self._config = new_config
                subscribers = list(self._subscribers.values())

            logger.info("Configuration in %s changed, notifying %d subscriber(s)", config_file, len(subscribers))
            for subscriber in subscribers:
                try:
                    subscriber.reload()
                except Exception:
                    logger.exception("Subscriber %r failed to handle configuration reload", subscriber)

    def register_subscriber(self, subscriber: Reloadable):
        with self._lock:
            self._subscribers[id(subscriber)] = subscriber

    def unregister_subscriber(self, subscriber: Reloadable) -> bool:
        with self._lock:
            return self._subscribers.pop(id(subscriber), None) is not None

    def close(self):
        """Stop watching the file. The last configuration stays available."""
        watcher = self._file_watcher
        if watcher is None:
            return
        watcher.close()
        watcher.join(self.WATCHER_JOIN_TIMEOUT)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
