"""Abstract USB host interface.

The session talks to the glasses only through these two classes, so it can
run against pyusb on a desktop or against scripted fakes in tests.

Key principles:
- Descriptor snapshots (UsbDevice) instead of live backend objects
- Reads return bytes, an empty result means "nothing arrived in time"
- Non-timeout I/O failures raise TransportError
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import UsbDevice, UsbEndpoint, UsbInterface


class UsbConnection(ABC):
    """An opened USB device."""

    @abstractmethod
    def claim_interface(self, interface: UsbInterface, force: bool = True) -> bool:
        """Claim an interface for exclusive use.

        Args:
            interface: Interface to claim
            force: Detach a kernel driver bound to the interface first

        Returns:
            True if the interface was claimed
        """
        pass

    @abstractmethod
    def release_interface(self, interface: UsbInterface) -> None:
        """Release a previously claimed interface."""
        pass

    @abstractmethod
    def bulk_read(self, endpoint: UsbEndpoint, size: int, timeout_ms: int) -> bytes:
        """Read up to `size` bytes from an IN endpoint.

        Returns:
            Bytes read, empty if the timeout expired

        Raises:
            TransportError: On any failure other than a timeout
        """
        pass

    @abstractmethod
    def bulk_write(self, endpoint: UsbEndpoint, data: bytes, timeout_ms: int) -> int:
        """Write `data` to an OUT endpoint.

        Returns:
            Number of bytes written, or -1 on failure
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the device. Should be safe to call multiple times."""
        pass


class UsbHost(ABC):
    """Enumerates and opens USB devices."""

    @abstractmethod
    def list_devices(self) -> List[UsbDevice]:
        """Snapshot of all attached devices."""
        pass

    @abstractmethod
    def has_permission(self, device: UsbDevice) -> bool:
        pass

    @abstractmethod
    def request_permission(self, device: UsbDevice) -> None:
        """Ask the platform for access.

        The answer arrives later as a permission-result DeviceEvent.
        """
        pass

    @abstractmethod
    def open_device(self, device: UsbDevice) -> Optional[UsbConnection]:
        """Open a device.

        Returns:
            UsbConnection, or None if the device could not be opened
        """
        pass
