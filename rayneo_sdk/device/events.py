"""Device lifecycle events.

The platform (udev monitor, Android broadcast bridge, a test) reports USB
permission answers and attach/detach notifications through a
DeviceEventSource. The session subscribes while it is started.
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List

from ..models import UsbDevice

logger = logging.getLogger(__name__)


class DeviceEventKind(Enum):
    """Kind of lifecycle notification."""
    PERMISSION_RESULT = "permission_result"
    ATTACHED = "attached"
    DETACHED = "detached"


@dataclass(frozen=True)
class DeviceEvent:
    """A single lifecycle notification.

    Attributes:
        kind: What happened
        device: Device the event refers to
        granted: For PERMISSION_RESULT, whether access was granted
    """
    kind: DeviceEventKind
    device: UsbDevice
    granted: bool = False

    @classmethod
    def permission(cls, device: UsbDevice, granted: bool) -> DeviceEvent:
        return cls(DeviceEventKind.PERMISSION_RESULT, device, granted)

    @classmethod
    def attached(cls, device: UsbDevice) -> DeviceEvent:
        return cls(DeviceEventKind.ATTACHED, device)

    @classmethod
    def detached(cls, device: UsbDevice) -> DeviceEvent:
        return cls(DeviceEventKind.DETACHED, device)


class DeviceEventSource(ABC):
    """Publisher of DeviceEvents."""

    @abstractmethod
    def subscribe(self, callback: Callable[[DeviceEvent], None]) -> Callable[[], None]:
        """Subscribe to device events.

        Callbacks may be invoked from any thread.

        Returns:
            Unsubscribe function
        """
        pass


class CallbackEventSource(DeviceEventSource):
    """In-process event source; whoever owns it calls emit()."""

    def __init__(self):
        self._callbacks: List[Callable[[DeviceEvent], None]] = []
        self._callback_lock = threading.Lock()

    def subscribe(self, callback: Callable[[DeviceEvent], None]) -> Callable[[], None]:
        with self._callback_lock:
            self._callbacks.append(callback)

        def unsubscribe():
            with self._callback_lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def emit(self, event: DeviceEvent) -> None:
        """Deliver an event to every subscriber on the calling thread."""
        with self._callback_lock:
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in device event callback: {e}")

    @property
    def subscriber_count(self) -> int:
        with self._callback_lock:
            return len(self._callbacks)
