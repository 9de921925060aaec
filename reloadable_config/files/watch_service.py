import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from queue import Queue
from typing import Dict, FrozenSet, Iterable, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch
from watchdog.observers.polling import PollingObserver

from ..exceptions import WatchServiceClosedError

logger = logging.getLogger(__name__)

# Beyond this many undelivered events a key reports a single OVERFLOW instead
MAX_PENDING_EVENTS = 512


class EventKind(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    OVERFLOW = "overflow"


class Sensitivity(Enum):
    """Polling interval hint, in seconds, for facilities that poll."""
    HIGH = 2
    MEDIUM = 10
    LOW = 30

    @property
    def seconds(self) -> float:
        return float(self.value)


@dataclass(frozen=True)
class WatchEvent:
    kind: EventKind
    # Child name relative to the registered directory; None for OVERFLOW
    context: Optional[Path] = None


class WatchKey:
    """
    Registration of one directory with a WatchService.

    A key is queued on its service when the first event arrives and stays
    out of the queue until reset(), so everything that happens between two
    takes is delivered as one batch by poll_events().
    """
    def __init__(self, service: "WatchService", directory: Path, kinds: FrozenSet[EventKind]):
        self.service = service
        self.directory = directory
        self.kinds = kinds
        self._lock = threading.Lock()
        self._events: List[WatchEvent] = []
        self._signalled = False
        self._valid = True

    @property
    def is_valid(self) -> bool:
        with self._lock:
            return self._valid

    def signal_event(self, event: WatchEvent):
        if event.kind is not EventKind.OVERFLOW and event.kind not in self.kinds:
            return
        with self._lock:
            if not self._valid:
                return
            if len(self._events) >= MAX_PENDING_EVENTS:
                self._events = [WatchEvent(EventKind.OVERFLOW)]
            elif not self._overflowed():
                self._events.append(event)
            wake = not self._signalled
            self._signalled = True
        if wake:
            self.service._enqueue(self)

    def _overflowed(self) -> bool:
        # Once collapsed, the batch stays a single OVERFLOW until polled
        return len(self._events) == 1 and self._events[0].kind is EventKind.OVERFLOW

    def poll_events(self) -> List[WatchEvent]:
        with self._lock:
            events, self._events = self._events, []
        return events

    def reset(self) -> bool:
        with self._lock:
            if self._valid and not self.directory.is_dir():
                self._valid = False
            if not self._valid:
                return False
            requeue = bool(self._events)
            self._signalled = requeue
        if requeue:
            self.service._enqueue(self)
        return True

    def cancel(self):
        with self._lock:
            if not self._valid:
                return
            self._valid = False
        self.service._cancel(self)

    def invalidate(self):
        """Mark the key dead and wake the taker so it can notice."""
        with self._lock:
            if not self._valid:
                return
            self._valid = False
            wake = not self._signalled
            self._signalled = True
        if wake:
            self.service._enqueue(self)

    def __repr__(self):
        return f"WatchKey({str(self.directory)!r}, valid={self._valid})"


_CLOSED = object()


class WatchService:
    """
    Blocking queue of signalled WatchKeys.

    Subclasses connect a real event source by overriding _start_watching,
    _stop_watching and _shutdown; the base class handles key bookkeeping,
    take() and close().
    """
    def __init__(self):
        self._queue: "Queue[object]" = Queue()
        self._lock = threading.Lock()
        self._keys: List[WatchKey] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def register(
        self,
        directory: Path,
        kinds: Iterable[EventKind] = (EventKind.CREATE, EventKind.MODIFY),
        sensitivity: Sensitivity = Sensitivity.MEDIUM,
    ) -> WatchKey:
        if self._closed:
            raise WatchServiceClosedError("Watch service is closed")
        directory = Path(directory)
        if not directory.is_dir():
            raise NotADirectoryError(f"Cannot watch {directory}: not a directory")

        key = WatchKey(self, directory, frozenset(kinds))
        self._start_watching(key, sensitivity)
        with self._lock:
            self._keys.append(key)
        logger.debug("Registered %s for %s", directory, sorted(k.value for k in key.kinds))
        return key

    def take(self) -> WatchKey:
        # Keys signalled before close() are still handed out, the close marker queues behind them
        item = self._queue.get()
        if item is _CLOSED:
            # Leave the marker for any other blocked taker
            self._queue.put(_CLOSED)
            raise WatchServiceClosedError("Watch service was closed while waiting")
        return item

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            keys, self._keys = self._keys, []

        for key in keys:
            key.invalidate()
            try:
                self._stop_watching(key)
            except OSError as e:
                logger.warning("Could not stop watching %s: %s", key.directory, e)
        try:
            self._shutdown()
        finally:
            self._queue.put(_CLOSED)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _enqueue(self, key: WatchKey):
        if not self._closed:
            self._queue.put(key)

    def _cancel(self, key: WatchKey):
        with self._lock:
            if key not in self._keys:
                return
            self._keys.remove(key)
        self._stop_watching(key)

    def _start_watching(self, key: WatchKey, sensitivity: Sensitivity):
        pass

    def _stop_watching(self, key: WatchKey):
        pass

    def _shutdown(self):
        pass


class _DirectoryEventHandler(FileSystemEventHandler):
    """Translates watchdog events for one directory into WatchEvents on a key."""
    def __init__(self, key: WatchKey):
        super().__init__()
        self.key = key
        # Some backends (FSEvents) report symlink-resolved paths
        self._directories = {key.directory, Path(os.path.realpath(key.directory))}

    def on_any_event(self, event: FileSystemEvent):
        src = Path(os.fsdecode(event.src_path))

        if event.is_directory:
            if event.event_type == "deleted" and src in self._directories:
                self.key.invalidate()
            return

        if event.event_type == "created":
            self._signal(EventKind.CREATE, src)
        elif event.event_type == "modified":
            self._signal(EventKind.MODIFY, src)
        elif event.event_type == "moved":
            # Atomic replace: a temp file renamed over the target
            self._signal(EventKind.CREATE, Path(os.fsdecode(event.dest_path)))

    def _signal(self, kind: EventKind, path: Path):
        if path.parent not in self._directories:
            return
        self.key.signal_event(WatchEvent(kind, Path(path.name)))


class WatchdogWatchService(WatchService):
    """
    WatchService backed by a watchdog observer.

    The native observer (inotify, FSEvents, ReadDirectoryChangesW, kqueue)
    is used by default; polling=True switches to watchdog's PollingObserver
    and then the registration sensitivity becomes its polling interval.
    """
    JOIN_TIMEOUT = 2.0

    def __init__(self, polling: bool = False):
        super().__init__()
        self.polling = polling
        self._observer = None
        self._watches: Dict[WatchKey, ObservedWatch] = {}

    def _start_watching(self, key: WatchKey, sensitivity: Sensitivity):
        if self._observer is None:
            if self.polling:
                self._observer = PollingObserver(timeout=sensitivity.seconds)
            else:
                self._observer = Observer()
            self._observer.start()
        watch = self._observer.schedule(_DirectoryEventHandler(key), str(key.directory), recursive=False)
        self._watches[key] = watch

    def _stop_watching(self, key: WatchKey):
        watch = self._watches.pop(key, None)
        if watch is None or self._observer is None:
            return
        try:
            self._observer.unschedule(watch)
        except KeyError:
            # The emitter already went away with its directory
            pass

    def _shutdown(self):
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(self.JOIN_TIMEOUT)
        self._observer = None
