"""
USB device classification
A device is USB-relevant if its instance path sits on a USB bus or its
display name looks like a USB hub or host controller.
"""

import fnmatch
import re
from typing import Pattern, Tuple

from device_enumerator import Device

USB_INSTANCE_PREFIXES: Tuple[str, ...] = ("USB\\", "USBSTOR\\")

USB_NAME_PATTERNS: Tuple[str, ...] = (
    "*USB*Hub*",
    "*USB*Controller*",
    "*Root Hub*",
    "*Universal Serial Bus*",
    "*eXtensible Host Controller*",
    "*Enhanced Host Controller*",
    "*Open Host Controller*",
    "*Universal Host Controller*",
)

_NAME_MATCHERS: Tuple[Pattern[str], ...] = tuple(
    re.compile(fnmatch.translate(pattern), re.IGNORECASE) for pattern in USB_NAME_PATTERNS
)


def matches_instance_prefix(instance_id: str) -> bool:
    if not instance_id:
        return False
    upper = instance_id.upper()
    return any(upper.startswith(prefix) for prefix in USB_INSTANCE_PREFIXES)


def matches_name_pattern(name: str) -> bool:
    if not name:
        return False
    return any(matcher.match(name) for matcher in _NAME_MATCHERS)


def is_usb_device(device: Device) -> bool:
    return matches_instance_prefix(device.instance_id) or matches_name_pattern(device.name)
