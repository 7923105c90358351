from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from taskforce_common.errors import OperationCancelled
from taskforce_common.schemas import TaskStatus

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative cancellation signal shared by every blocking call of a session.

    Waiting on the token returns as soon as it is cancelled, and callbacks let
    a session close its connection so a blocked read is interrupted too.
    """

    def __init__(self, parent: Optional["CancelToken"] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self._parent = parent
        if parent is not None:
            parent.add_callback(self.cancel)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            cb()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block up to ``timeout`` seconds; True if the token got cancelled."""
        return self._event.wait(timeout)

    def add_callback(self, cb: Callable[[], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(cb)
                return
        cb()

    def remove_callback(self, cb: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(cb)
            except ValueError:
                pass

    def child(self) -> "CancelToken":
        return CancelToken(parent=self)

    def detach(self) -> None:
        """Stop following the parent token."""
        if self._parent is not None:
            self._parent.remove_callback(self.cancel)
            self._parent = None

    def raise_if_cancelled(self, status: Optional[TaskStatus] = None) -> None:
        if self._event.is_set():
            logger.debug("cancellation observed")
            raise OperationCancelled(status=status)
