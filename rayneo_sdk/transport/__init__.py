"""Transport layer for RayNeo USB communication."""

from .base import UsbConnection, UsbHost
from .libusb import PyUsbConnection, PyUsbHost

__all__ = ["UsbConnection", "UsbHost", "PyUsbConnection", "PyUsbHost"]
