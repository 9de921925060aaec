import threading

import pytest
from watchdog.events import (
    DirDeletedEvent,
    DirModifiedEvent,
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from conftest import FakeWatchService, create, modify
from reloadable_config.exceptions import WatchServiceClosedError
from reloadable_config.files.watch_service import (
    MAX_PENDING_EVENTS,
    EventKind,
    Sensitivity,
    WatchEvent,
    _DirectoryEventHandler,
)


def test_register_requires_directory(tmp_path, watch_service):
    file = tmp_path / "file.txt"
    file.write_text("")
    with pytest.raises(NotADirectoryError):
        watch_service.register(file)


def test_events_between_takes_form_one_batch(tmp_path, watch_service):
    key = watch_service.register(tmp_path)
    key.signal_event(create("a.json"))
    key.signal_event(modify("a.json"))

    assert watch_service.take() is key
    assert key.poll_events() == [create("a.json"), modify("a.json")]
    assert key.poll_events() == []
    assert key.reset() is True


def test_events_after_poll_requeue_on_reset(tmp_path, watch_service):
    key = watch_service.register(tmp_path)
    key.signal_event(modify("a.json"))
    assert watch_service.take() is key
    key.poll_events()

    key.signal_event(modify("a.json"))
    assert watch_service._queue.empty()
    assert key.reset() is True
    assert watch_service.take() is key
    assert key.poll_events() == [modify("a.json")]


def test_unregistered_kinds_are_dropped(tmp_path, watch_service):
    key = watch_service.register(tmp_path, kinds=(EventKind.MODIFY,))
    key.signal_event(create("a.json"))
    assert watch_service._queue.empty()


def test_too_many_events_collapse_to_overflow(tmp_path, watch_service):
    key = watch_service.register(tmp_path)
    for i in range(MAX_PENDING_EVENTS + 10):
        key.signal_event(modify(f"file-{i}.txt"))

    assert watch_service.take() is key
    assert key.poll_events() == [WatchEvent(EventKind.OVERFLOW)]


def test_reset_reports_deleted_directory(tmp_path, watch_service):
    directory = tmp_path / "conf.d"
    directory.mkdir()
    key = watch_service.register(directory)
    directory.rmdir()
    assert key.reset() is False
    assert not key.is_valid


def test_cancelled_key_is_invalid(tmp_path, watch_service):
    key = watch_service.register(tmp_path)
    key.cancel()
    assert not key.is_valid
    assert key.reset() is False
    key.signal_event(modify("a.json"))
    assert watch_service._queue.empty()


def test_close_wakes_every_waiting_taker(tmp_path, watch_service):
    watch_service.register(tmp_path, sensitivity=Sensitivity.LOW)
    errors = []

    def wait():
        try:
            watch_service.take()
        except WatchServiceClosedError as e:
            errors.append(e)

    threads = [threading.Thread(target=wait) for _ in range(3)]
    for thread in threads:
        thread.start()
    watch_service.close()
    for thread in threads:
        thread.join(timeout=2)

    assert len(errors) == 3
    with pytest.raises(WatchServiceClosedError):
        watch_service.register(tmp_path)


def test_close_is_idempotent(tmp_path):
    service = FakeWatchService()
    key = service.register(tmp_path)
    service.close()
    service.close()
    assert service.closed
    assert not key.is_valid


@pytest.fixture
def handler(tmp_path, watch_service):
    return _DirectoryEventHandler(watch_service.register(tmp_path))


def test_handler_maps_created_and_modified(tmp_path, handler):
    handler.on_any_event(FileCreatedEvent(str(tmp_path / "a.json")))
    handler.on_any_event(FileModifiedEvent(str(tmp_path / "a.json")))
    assert handler.key.poll_events() == [create("a.json"), modify("a.json")]


def test_handler_maps_move_into_directory_to_create(tmp_path, handler):
    handler.on_any_event(FileMovedEvent(str(tmp_path / "a.json.tmp"), str(tmp_path / "a.json")))
    assert handler.key.poll_events() == [create("a.json")]


def test_handler_drops_move_out_of_directory(tmp_path, handler):
    elsewhere = tmp_path.parent / "elsewhere.json"
    handler.on_any_event(FileMovedEvent(str(tmp_path / "a.json"), str(elsewhere)))
    assert handler.key.poll_events() == []


def test_handler_drops_events_from_other_directories(tmp_path, handler, watch_service):
    handler.on_any_event(FileModifiedEvent(str(tmp_path / "nested" / "a.json")))
    handler.on_any_event(FileCreatedEvent(str(tmp_path.parent / "a.json")))
    assert handler.key.poll_events() == []
    assert watch_service._queue.empty()


def test_handler_invalidates_key_when_directory_is_deleted(tmp_path, handler, watch_service):
    handler.on_any_event(DirModifiedEvent(str(tmp_path)))
    handler.on_any_event(DirDeletedEvent(str(tmp_path / "nested")))
    assert handler.key.is_valid

    handler.on_any_event(DirDeletedEvent(str(tmp_path)))
    assert not handler.key.is_valid
    assert watch_service.take() is handler.key
