import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

from ..exceptions import InvalidArgumentError, WatchServiceClosedError
from ..reloadable import Reloadable
from .watch_service import (
    EventKind,
    Sensitivity,
    WatchdogWatchService,
    WatchEvent,
    WatchKey,
    WatchService,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatchTarget:
    file: Path
    directory: Path

    @classmethod
    def for_file(cls, file) -> "WatchTarget":
        if file is None:
            raise InvalidArgumentError("File to watch cannot be None")
        path = Path(os.path.abspath(file))
        if path.is_dir():
            raise InvalidArgumentError(f"File {path} must be a regular file, not a directory")
        if not path.is_file():
            raise InvalidArgumentError(f"File {path} must be an existing regular file")
        return cls(file=path, directory=path.parent)


class FileWatcher:
    """
    Watches a single file and tells its subscribers when it changes.

    Most platforms cannot watch a lone file (and editors often save by
    writing a temp file and renaming it over the file), so the parent
    directory is registered and its events are filtered down to the one
    file. Every batch of events taken from the watch service that touches
    the file results in exactly one reload() per subscriber.
    """
    def __init__(
        self,
        file,
        subscribers: Iterable[Reloadable],
        watch_service: Optional[WatchService] = None,
        sensitivity: Sensitivity = Sensitivity.MEDIUM,
    ):
        self.target = WatchTarget.for_file(file)
        if subscribers is None:
            raise InvalidArgumentError("Subscribers cannot be None")
        self._subscribers: Dict[int, Reloadable] = {id(s): s for s in subscribers}
        if not self._subscribers:
            raise InvalidArgumentError("Subscribers cannot be empty")

        self._lock = threading.Lock()
        self._closed = False
        self._thread: Optional[threading.Thread] = None
        self.watch_service = watch_service if watch_service is not None else WatchdogWatchService()
        try:
            self.watch_key: WatchKey = self.watch_service.register(
                self.target.directory, (EventKind.CREATE, EventKind.MODIFY), sensitivity
            )
        except Exception:
            # Backends may have started threads before failing
            self.watch_service.close()
            raise

    @property
    def file(self) -> Path:
        return self.target.file

    def start(self) -> threading.Thread:
        """Run begin_watching() on a daemon thread and return that thread."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return self._thread
            self._thread = threading.Thread(
                target=self.begin_watching, name=f"file-watcher:{self.file.name}", daemon=True
            )
            self._thread.start()
            return self._thread

    def begin_watching(self):
        logger.debug("Watching %s", self.file)
        while True:
            try:
                key = self.watch_service.take()
            except (WatchServiceClosedError, InterruptedError) as e:
                logger.debug("Stopped watching %s: %s", self.file, e)
                return
            except OSError as e:
                logger.error("Watch service failed while watching %s: %s", self.file, e)
                return

            if key is not self.watch_key:
                logger.warning("Received unrecognized watch key %r, expected %r", key, self.watch_key)
                continue

            if any(self._is_relevant(event) for event in key.poll_events()):
                self._notify_subscribers()

            if not key.reset():
                logger.info("Directory %s is no longer watchable, stopped watching %s",
                            self.target.directory, self.file)
                return

    def _is_relevant(self, event: WatchEvent) -> bool:
        # Overflow means events were lost, any of them may have been ours
        if event.kind is EventKind.OVERFLOW:
            return True
        if event.context is None:
            return False
        return self.target.directory / event.context == self.file

    def _notify_subscribers(self):
        with self._lock:
            subscribers = list(self._subscribers.values())
        logger.debug("%s changed, notifying %d subscriber(s)", self.file, len(subscribers))
        for subscriber in subscribers:
            try:
                subscriber.reload()
            except Exception:
                logger.exception("Subscriber %r failed to reload after %s changed", subscriber, self.file)

    def register_subscriber(self, subscriber: Reloadable):
        with self._lock:
            self._subscribers[id(subscriber)] = subscriber

    def unregister_subscriber(self, subscriber: Reloadable) -> bool:
        with self._lock:
            return self._subscribers.pop(id(subscriber), None) is not None

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self.watch_key.cancel()
        except OSError as e:
            logger.warning("Could not cancel watch on %s: %s", self.target.directory, e)
        try:
            self.watch_service.close()
        except OSError as e:
            logger.warning("Could not close watch service for %s: %s", self.file, e)

    def join(self, timeout: Optional[float] = None):
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
