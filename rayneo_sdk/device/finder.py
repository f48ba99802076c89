from __future__ import annotations

import logging
from typing import Callable, List, Optional

from ..errors import DeviceNotFoundError
from ..models import UsbDevice, format_device
from ..protocol.constants import PRODUCT_ID, VENDOR_ID
from ..transport.base import UsbHost

logger = logging.getLogger(__name__)


def is_matching_device(
    device: UsbDevice,
    *,
    vendor_id: Optional[int] = VENDOR_ID,
    product_id: Optional[int] = PRODUCT_ID,
) -> bool:
    """
    Decide whether a given UsbDevice is a pair of RayNeo glasses.

    All checks are AND-combined; if a criterion is None, it is ignored.
    """
    if vendor_id is not None and device.vendor_id != vendor_id:
        return False

    if product_id is not None and device.product_id != product_id:
        return False

    return True


def find_devices(
    host: UsbHost,
    *,
    matcher: Optional[Callable[[UsbDevice], bool]] = None,
    vendor_id: Optional[int] = VENDOR_ID,
    product_id: Optional[int] = PRODUCT_ID,
) -> List[UsbDevice]:
    """
    Find all matching devices attached to the host.

    You can either pass a custom `matcher(device) -> bool` or use the
    vendor/product id criteria.
    """
    results: List[UsbDevice] = []

    for device in host.list_devices():
        if matcher is not None:
            if matcher(device):
                results.append(device)
        elif is_matching_device(device, vendor_id=vendor_id, product_id=product_id):
            results.append(device)

    return results


def find_single_device(
    host: UsbHost,
    *,
    matcher: Optional[Callable[[UsbDevice], bool]] = None,
    vendor_id: Optional[int] = VENDOR_ID,
    product_id: Optional[int] = PRODUCT_ID,
) -> UsbDevice:
    """
    Find the device to open.

    Behaviour:
        - 0 matches  -> DeviceNotFoundError
        - 1 match    -> return it
        - >1 matches -> log a warning and return the first one, only one
          device is driven at a time
    """
    matches = find_devices(
        host,
        matcher=matcher,
        vendor_id=vendor_id,
        product_id=product_id,
    )

    if not matches:
        raise DeviceNotFoundError(
            f"RayNeo not found (VID 0x{vendor_id or 0:04x} / PID 0x{product_id or 0:04x})"
        )

    if len(matches) > 1:
        logger.warning(
            "Multiple matching devices found, using the first one. Devices: %s",
            [format_device(d) for d in matches],
        )

    return matches[0]
