"""Tests for the pyusb host with mocked devices."""
import unittest
from unittest.mock import MagicMock, patch

import usb.core

from rayneo_sdk.errors import TransportError
from rayneo_sdk.models import USB_ENDPOINT_XFER_BULK, USB_ENDPOINT_XFER_INT, UsbEndpoint, UsbInterface
from rayneo_sdk.protocol.codec import select_endpoints
from rayneo_sdk.transport.libusb import PyUsbConnection, PyUsbHost


def mock_endpoint(address, attributes, size=64):
    ep = MagicMock()
    ep.bEndpointAddress = address
    ep.bmAttributes = attributes
    ep.wMaxPacketSize = size
    return ep


def mock_interface(number, endpoints):
    intf = MagicMock()
    intf.bInterfaceNumber = number
    intf.endpoints.return_value = endpoints
    return intf


def mock_glasses():
    dev = MagicMock()
    dev.idVendor = 0x1BBB
    dev.idProduct = 0xAF50
    dev.bus = 1
    dev.address = 5
    dev.get_active_configuration.return_value = [
        mock_interface(0, [mock_endpoint(0x82, 0x02, 512), mock_endpoint(0x02, 0x02, 512)]),
        mock_interface(2, [mock_endpoint(0x83, 0x03), mock_endpoint(0x03, 0x03)]),
    ]
    return dev


class TestPyUsbHost(unittest.TestCase):
    """Test descriptor snapshots and opening."""

    def test_list_devices_snapshots_descriptors(self):
        dev = mock_glasses()
        with patch("usb.core.find", return_value=iter([dev])):
            devices = PyUsbHost().list_devices()

        self.assertEqual(len(devices), 1)
        device = devices[0]
        self.assertEqual(device.device_id, (1 << 8) | 5)
        self.assertEqual((device.vendor_id, device.product_id), (0x1BBB, 0xAF50))
        self.assertIs(device.handle, dev)
        self.assertEqual(device.interfaces[0].endpoints[0],
                         UsbEndpoint(0x82, USB_ENDPOINT_XFER_BULK, 512))
        self.assertEqual(device.interfaces[1].endpoints[1], UsbEndpoint(0x03, USB_ENDPOINT_XFER_INT, 64))

        # Snapshot feeds straight into endpoint selection
        self.assertEqual(select_endpoints(device).interface.number, 2)

    def test_unconfigured_device_has_no_interfaces(self):
        dev = mock_glasses()
        dev.get_active_configuration.side_effect = usb.core.USBError("not configured")
        with patch("usb.core.find", return_value=iter([dev])):
            devices = PyUsbHost().list_devices()

        self.assertEqual(devices[0].interfaces, ())

    def test_always_permitted(self):
        host = PyUsbHost()
        with patch("usb.core.find", return_value=iter([mock_glasses()])):
            device = host.list_devices()[0]

        self.assertTrue(host.has_permission(device))
        host.request_permission(device)

    def test_open_configures_when_needed(self):
        dev = mock_glasses()
        with patch("usb.core.find", return_value=iter([dev])):
            device = PyUsbHost().list_devices()[0]

        dev.get_active_configuration.side_effect = usb.core.USBError("not configured")
        connection = PyUsbHost().open_device(device)

        self.assertIsInstance(connection, PyUsbConnection)
        dev.set_configuration.assert_called_once()

    def test_open_failure_returns_none(self):
        dev = mock_glasses()
        with patch("usb.core.find", return_value=iter([dev])):
            device = PyUsbHost().list_devices()[0]

        dev.get_active_configuration.side_effect = usb.core.USBError("gone")
        dev.set_configuration.side_effect = usb.core.USBError("Access denied")

        self.assertIsNone(PyUsbHost().open_device(device))


class TestPyUsbConnection(unittest.TestCase):
    """Test reads, writes and interface handling."""

    def setUp(self):
        self.dev = MagicMock()
        self.connection = PyUsbConnection(self.dev)
        self.interface = UsbInterface(2)
        self.endpoint = UsbEndpoint(0x83, USB_ENDPOINT_XFER_INT)

    def test_claim_detaches_and_release_reattaches(self):
        self.dev.is_kernel_driver_active.return_value = True
        with patch("usb.util.claim_interface") as claim, patch("usb.util.release_interface") as release:
            self.assertTrue(self.connection.claim_interface(self.interface))
            self.connection.release_interface(self.interface)

        self.dev.detach_kernel_driver.assert_called_once_with(2)
        claim.assert_called_once_with(self.dev, 2)
        release.assert_called_once_with(self.dev, 2)
        self.dev.attach_kernel_driver.assert_called_once_with(2)

    def test_claim_failure(self):
        self.dev.is_kernel_driver_active.return_value = False
        with patch("usb.util.claim_interface", side_effect=usb.core.USBError("busy")):
            self.assertFalse(self.connection.claim_interface(self.interface))

    def test_read(self):
        self.dev.read.return_value = [0x99, 0x65, 0x40]

        self.assertEqual(self.connection.bulk_read(self.endpoint, 64, 50), b"\x99\x65\x40")
        self.dev.read.assert_called_once_with(0x83, 64, timeout=50)

    def test_read_timeout_is_empty(self):
        self.dev.read.side_effect = usb.core.USBTimeoutError("timeout")

        self.assertEqual(self.connection.bulk_read(self.endpoint, 64, 50), b"")

    def test_read_error_raises(self):
        self.dev.read.side_effect = usb.core.USBError("No such device", errno=19)

        with self.assertRaises(TransportError):
            self.connection.bulk_read(self.endpoint, 64, 50)

    def test_write(self):
        self.dev.write.return_value = 64

        self.assertEqual(self.connection.bulk_write(self.endpoint, bytes(64), 1000), 64)

    def test_write_error(self):
        self.dev.write.side_effect = usb.core.USBError("pipe")

        self.assertEqual(self.connection.bulk_write(self.endpoint, bytes(64), 1000), -1)

    def test_close_once(self):
        with patch("usb.util.dispose_resources") as dispose:
            self.connection.close()
            self.connection.close()

        dispose.assert_called_once_with(self.dev)


if __name__ == '__main__':
    unittest.main()
