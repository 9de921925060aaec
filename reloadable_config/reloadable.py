from typing import Callable, Protocol, runtime_checkable


@runtime_checkable
class Reloadable(Protocol):
    """
    Anything that can be told "the thing you depend on changed".
    Watchers notify their subscribers through this, and configuration
    stores are Reloadable themselves so they can be chained.
    """
    def reload(self) -> None: ...


class FunctionSubscriber:
    """Adapts a zero-argument callable into a Reloadable."""
    def __init__(self, callback: Callable[[], None]):
        self.callback = callback

    def reload(self) -> None:
        self.callback()

    def __repr__(self):
        name = getattr(self.callback, "__qualname__", repr(self.callback))
        return f"FunctionSubscriber({name})"
