"""
Synchronous signals with weakly referenced receivers.

A signal is a list of receivers that are all called, in connection order, when
the signal is sent. Receivers that have been garbage collected are dropped
silently, so connecting a bound method does not keep its object alive.
"""

from __future__ import annotations

import inspect
import weakref
from collections.abc import Callable
from typing import Any
from typing import cast


def make_weak_ref(obj: Any) -> weakref.ReferenceType:
    """
    Like weakref.ref(), but using weakref.WeakMethod for bound methods.
    """
    if hasattr(obj, "__self__"):
        return cast(weakref.ref, weakref.WeakMethod(obj))
    else:
        return weakref.ref(obj)


class SyncSignal:
    """
    Example:

        updated = SyncSignal()

        def receiver(updated):
            print(updated)

        updated.connect(receiver)
        updated.send(updated={"blocking"})  # prints {'blocking'}
    """

    def __init__(self) -> None:
        self.receivers: list[weakref.ref] = []

    def connect(self, receiver: Callable[..., None]) -> None:
        assert not inspect.iscoroutinefunction(receiver)
        self.receivers.append(make_weak_ref(receiver))

    def disconnect(self, receiver: Callable[..., None]) -> None:
        self.receivers = [r for r in self.receivers if r() != receiver]

    def send(self, *args, **kwargs) -> None:
        """
        Call all live receivers. Exceptions raised by a receiver propagate
        to the sender and skip the remaining receivers.
        """
        for ref in list(self.receivers):
            receiver = ref()
            if receiver is not None:
                receiver(*args, **kwargs)
        self.receivers = [r for r in self.receivers if r() is not None]
