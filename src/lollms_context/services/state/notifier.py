from __future__ import annotations

import logging
from typing import Callable, FrozenSet, Iterable, List


LOG = logging.getLogger(__name__)

ChangeCallback = Callable[[FrozenSet[str]], None]


class Subscription:
    """Disposal handle returned by `ChangeNotifier.subscribe`."""

    def __init__(self, notifier: "ChangeNotifier", callback: ChangeCallback) -> None:
        self._notifier = notifier
        self._callback = callback
        self.disposed = False

    def dispose(self) -> None:
        if not self.disposed:
            self._notifier._remove(self._callback)
            self.disposed = True


class ChangeNotifier:
    """
    Synchronous fan-out of path-set changes to every subscriber.

    An empty set means "reload everything". Nothing is queued or retained:
    subscribers only see changes fired after they subscribed.
    """

    def __init__(self) -> None:
        self._callbacks: List[ChangeCallback] = []

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        self._callbacks.append(callback)
        return Subscription(self, callback)

    def fire(self, paths: Iterable[str] = ()) -> FrozenSet[str]:
        changed = frozenset(paths)
        for callback in list(self._callbacks):
            try:
                callback(changed)
            except Exception:
                LOG.exception("Change subscriber %r failed", callback)
        return changed

    def __len__(self) -> int:
        return len(self._callbacks)

    def _remove(self, callback: ChangeCallback) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass
