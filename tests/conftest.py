import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import pytest
from pydantic import Field

from reloadable_config.config.schema import ConfigModel
from reloadable_config.files.watch_service import EventKind, WatchEvent, WatchService

CONFIG_JSON = """{
  "modEnabled": true,
  "chatEnabled": true,
  "enabledPrefixes": ["!", "?", "#", "$", "%"],
  "disabledPrefixes": [],
  "enabledRegularExpressions": ["^hello.*"]
}
"""

CONFIG_YAML = """modEnabled: true
chatEnabled: true
enabledPrefixes:
  - "!"
  - "?"
  - "#"
  - "$"
  - "%"
disabledPrefixes: []
enabledRegularExpressions:
  - "^hello.*"
  - ".*bye$"
"""


class ChatConfig(ConfigModel):
    mod_enabled: bool = Field(False, alias="modEnabled")
    chat_enabled: bool = Field(False, alias="chatEnabled")
    enabled_prefixes: List[str] = Field(default_factory=list, alias="enabledPrefixes")
    disabled_prefixes: List[str] = Field(default_factory=list, alias="disabledPrefixes")
    enabled_regular_expressions: List[str] = Field(default_factory=list, alias="enabledRegularExpressions")


class OtherConfig(ConfigModel):
    mod_enabled: Optional[bool] = Field(None, alias="modEnabled")

    def is_mod_enabled(self) -> bool:
        return self.mod_enabled is None or self.mod_enabled


class CountingSubscriber:
    def __init__(self):
        self.reloads = 0
        self.event = threading.Event()
        self._lock = threading.Lock()

    def reload(self):
        with self._lock:
            self.reloads += 1
        self.event.set()


@dataclass(frozen=True)
class NamedListener:
    """Hashable, and equal to any other listener with the same name."""
    name: str
    calls: List[str] = field(default_factory=list, compare=False)

    def reload(self):
        self.calls.append(self.name)


@dataclass
class RecordingListener:
    """Unhashable: eq=True without frozen=True."""
    calls: List[str] = field(default_factory=list)

    def reload(self):
        self.calls.append("reload")


class FakeWatchService(WatchService):
    """In-memory watch service; tests push events straight onto its keys."""
    def __init__(self):
        super().__init__()
        self.registered = []

    def _start_watching(self, key, sensitivity):
        self.registered.append((key, sensitivity))


def modify(name) -> WatchEvent:
    return WatchEvent(EventKind.MODIFY, Path(name))


def create(name) -> WatchEvent:
    return WatchEvent(EventKind.CREATE, Path(name))


@pytest.fixture
def subscriber():
    return CountingSubscriber()


@pytest.fixture
def watch_service():
    service = FakeWatchService()
    yield service
    service.close()


@pytest.fixture
def watched_file(tmp_path):
    path = tmp_path / "file.txt"
    path.write_text("")
    return path


class BrokenWatchService(FakeWatchService):
    """Fails registration the way a backend out of OS watches does."""
    def _start_watching(self, key, sensitivity):
        raise OSError(28, "inotify watch limit reached")
