"""pyusb implementation of the USB host interface.

Talks to the glasses through libusb. Desktop libusb has no per-device
permission prompt: access is decided by the OS (udev rules on Linux), so
has_permission() always reports True and open failures surface as
OpenFailedError in the session.
"""
from __future__ import annotations

import logging
from typing import List, Optional

import usb.core
import usb.util

from ..errors import TransportError
from ..models import UsbDevice, UsbEndpoint, UsbInterface
from .base import UsbConnection, UsbHost

logger = logging.getLogger(__name__)


def _device_id(dev) -> int:
    """Bus/address pair packed into one integer."""
    return ((dev.bus or 0) << 8) | (dev.address or 0)


def _snapshot(dev) -> UsbDevice:
    """Convert a pyusb Device into a UsbDevice snapshot."""
    interfaces: List[UsbInterface] = []
    try:
        config = dev.get_active_configuration()
    except usb.core.USBError as e:
        logger.debug(f"No active configuration for {dev.idVendor:04x}:{dev.idProduct:04x}: {e}")
        config = None

    if config is not None:
        for intf in config:
            endpoints = tuple(
                UsbEndpoint(
                    address=ep.bEndpointAddress,
                    transfer_type=usb.util.endpoint_type(ep.bmAttributes),
                    max_packet_size=ep.wMaxPacketSize,
                )
                for ep in intf.endpoints()
            )
            interfaces.append(UsbInterface(
                number=intf.bInterfaceNumber,
                endpoints=endpoints,
            ))

    return UsbDevice(
        device_id=_device_id(dev),
        vendor_id=dev.idVendor,
        product_id=dev.idProduct,
        interfaces=tuple(interfaces),
        handle=dev,
    )


class PyUsbConnection(UsbConnection):
    """Open pyusb device handle."""

    def __init__(self, dev):
        self._dev = dev
        self._detached: List[int] = []
        self._closed = False

    def claim_interface(self, interface: UsbInterface, force: bool = True) -> bool:
        number = interface.number
        if force:
            try:
                if self._dev.is_kernel_driver_active(number):
                    self._dev.detach_kernel_driver(number)
                    self._detached.append(number)
            except (NotImplementedError, usb.core.USBError) as e:
                # Not supported on every platform
                logger.debug(f"Kernel driver check failed on interface {number}: {e}")

        try:
            usb.util.claim_interface(self._dev, number)
            return True
        except usb.core.USBError as e:
            logger.error(f"Failed to claim interface {number}: {e}")
            return False

    def release_interface(self, interface: UsbInterface) -> None:
        try:
            usb.util.release_interface(self._dev, interface.number)
        except usb.core.USBError as e:
            logger.warning(f"Failed to release interface {interface.number}: {e}")

        if interface.number in self._detached:
            self._detached.remove(interface.number)
            try:
                self._dev.attach_kernel_driver(interface.number)
            except (NotImplementedError, usb.core.USBError) as e:
                logger.debug(f"Could not reattach kernel driver: {e}")

    def bulk_read(self, endpoint: UsbEndpoint, size: int, timeout_ms: int) -> bytes:
        try:
            return bytes(self._dev.read(endpoint.address, size, timeout=timeout_ms))
        except usb.core.USBTimeoutError:
            return b""
        except usb.core.USBError as e:
            raise TransportError(f"USB read failed: {e}") from e

    def bulk_write(self, endpoint: UsbEndpoint, data: bytes, timeout_ms: int) -> int:
        try:
            return int(self._dev.write(endpoint.address, data, timeout=timeout_ms))
        except usb.core.USBError as e:
            logger.error(f"USB write failed: {e}")
            return -1

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            usb.util.dispose_resources(self._dev)
        except usb.core.USBError as e:
            logger.error(f"Error closing USB device: {e}")


class PyUsbHost(UsbHost):
    """USB host backed by pyusb/libusb."""

    def __init__(self, backend=None):
        """Initialize host.

        Args:
            backend: Explicit pyusb backend, or None for pyusb's default
        """
        self._backend = backend

    def list_devices(self) -> List[UsbDevice]:
        devices = usb.core.find(find_all=True, backend=self._backend) or []
        return [_snapshot(dev) for dev in devices]

    def has_permission(self, device: UsbDevice) -> bool:
        return True

    def request_permission(self, device: UsbDevice) -> None:
        # Nothing to ask for; see module docstring
        pass

    def open_device(self, device: UsbDevice) -> Optional[UsbConnection]:
        dev = device.handle
        if dev is None:
            dev = usb.core.find(
                idVendor=device.vendor_id,
                idProduct=device.product_id,
                backend=self._backend,
            )
            if dev is None:
                return None

        try:
            try:
                dev.get_active_configuration()
            except usb.core.USBError:
                dev.set_configuration()
        except usb.core.USBError as e:
            logger.error(f"Failed to configure {device.vendor_id:04x}:{device.product_id:04x}: {e}")
            return None

        return PyUsbConnection(dev)
