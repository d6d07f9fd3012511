"""
test_device_classifier.py - USB device classification tests
"""

import logging

import pytest

from device_classifier import is_usb_device, matches_instance_prefix, matches_name_pattern
from device_enumerator import Device

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@pytest.mark.parametrize("instance_id", [
    "USB\\VID_046D&PID_C52B\\5&2A3F1C8&0&2",
    "usb\\root_hub30\\4&1e2f&0&0",
    "USBSTOR\\Disk&Ven_SanDisk&Prod_Ultra&Rev_1.00\\4C530001",
])
def test_instance_prefix_matches(instance_id):
    assert matches_instance_prefix(instance_id)
    assert is_usb_device(Device(instance_id=instance_id, name="", status="OK"))


@pytest.mark.parametrize("name", [
    "Generic USB Hub",
    "USB Root Hub (USB 3.0)",
    "Standard Enhanced PCI to USB Host Controller",
    "Intel(R) USB 3.10 eXtensible Host Controller - 1.20 (Microsoft)",
    "Standard OpenHCD USB Host Controller",
    "Universal Serial Bus controllers",
    "AMD Universal Host Controller",
    "root hub",
])
def test_name_patterns_match(name):
    assert matches_name_pattern(name)
    assert is_usb_device(Device(instance_id="", name=name, status="OK"))


@pytest.mark.parametrize("device", [
    Device(instance_id="HID\\VID_046D&PID_C52B&MI_00\\7&1a2b", name="HID-compliant mouse", status="OK"),
    Device(instance_id="PCI\\VEN_8086&DEV_15F3\\3&11583659", name="Intel(R) Ethernet Controller I225-V", status="OK"),
    Device(instance_id="", name="", status="Unknown"),
    Device(instance_id="ROOT\\USBHUBSTUFF\\0000", name="Audio Endpoint", status="OK"),
])
def test_non_usb_devices_rejected(device):
    assert not is_usb_device(device)


def test_empty_fields_fall_back_to_other_rule():
    logger.info("=" * 80)
    logger.info("Classifier: one empty field does not hide a match on the other")
    assert is_usb_device(Device(instance_id="", name="Generic USB Hub", status="OK"))
    assert is_usb_device(Device(instance_id="USB\\VID_1234&PID_5678\\0001", name="", status="Error"))


def test_classifier_is_pure():
    device = Device(instance_id="USB\\VID_1234&PID_5678\\0001", name="USB Input Device", status="OK")
    other = Device(instance_id="ACPI\\PNP0303\\4&0", name="Standard PS/2 Keyboard", status="OK")
    first = [is_usb_device(device), is_usb_device(other)]
    for _ in range(50):
        assert [is_usb_device(device), is_usb_device(other)] == first
    assert first == [True, False]


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
