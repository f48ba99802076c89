"""Unit tests for device discovery."""

import unittest

from rayneo_sdk.device.finder import find_devices, find_single_device, is_matching_device
from rayneo_sdk.errors import DeviceNotFoundError
from rayneo_sdk.models import UsbDevice
from tests.fakes import FakeHost, rayneo_device


def other_device(device_id=1):
    return UsbDevice(device_id=device_id, vendor_id=0x046D, product_id=0xC52B)


class TestFinder(unittest.TestCase):

    def test_matching(self):
        self.assertTrue(is_matching_device(rayneo_device()))
        self.assertFalse(is_matching_device(other_device()))
        self.assertTrue(is_matching_device(other_device(), vendor_id=None, product_id=None))

    def test_find_devices_filters(self):
        glasses = rayneo_device(device_id=4)
        host = FakeHost(devices=[other_device(), glasses, other_device(2)])

        self.assertEqual(find_devices(host), [glasses])

    def test_custom_matcher(self):
        host = FakeHost(devices=[other_device(1), other_device(2)])

        found = find_devices(host, matcher=lambda d: d.device_id == 2)

        self.assertEqual([d.device_id for d in found], [2])

    def test_single_not_found(self):
        with self.assertRaises(DeviceNotFoundError) as ctx:
            find_single_device(FakeHost(devices=[other_device()]))

        self.assertEqual(str(ctx.exception), "RayNeo not found (VID 0x1bbb / PID 0xaf50)")

    def test_single_with_overridden_ids(self):
        with self.assertRaises(DeviceNotFoundError) as ctx:
            find_single_device(FakeHost(), vendor_id=0x1234, product_id=0x0001)

        self.assertIn("VID 0x1234 / PID 0x0001", str(ctx.exception))

    def test_multiple_uses_first(self):
        first, second = rayneo_device(device_id=1), rayneo_device(device_id=2)

        with self.assertLogs("rayneo_sdk.device.finder", level="WARNING"):
            found = find_single_device(FakeHost(devices=[first, second]))

        self.assertIs(found, first)


if __name__ == '__main__':
    unittest.main()
