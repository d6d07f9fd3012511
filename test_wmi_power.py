"""
test_wmi_power.py - MSPower_DeviceEnable toggling tests
"""

import logging
from types import SimpleNamespace

import pytest

from device_enumerator import Device
from device_settings import Mode
from wmi_power import WmiPowerManager, instance_matches, lookup_state

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class FakePowerEntry:
    def __init__(self, instance_name, enable=True, fail=False):
        self.InstanceName = instance_name
        self.Enable = enable
        self.fail = fail
        self.saved = 0

    def Put_(self):
        if self.fail:
            raise RuntimeError("Access denied")
        self.saved += 1


def _manager(entries):
    connection = SimpleNamespace(MSPower_DeviceEnable=lambda: entries)
    return WmiPowerManager(connection_factory=lambda: connection)


def test_instance_matches():
    assert instance_matches("USB\\VID_1234&PID_5678\\0001_0", "usb\\vid_1234&pid_5678\\0001")
    assert instance_matches("USB\\ROOT_HUB30\\4&1", "USB\\ROOT_HUB30\\4&1")
    assert not instance_matches("USB\\VID_1234&PID_5678\\00010_0", "USB\\VID_1234&PID_5678\\0001")
    assert not instance_matches("", "USB\\A")
    assert not instance_matches("USB\\A_0", "")


def test_disable_only_touches_working_devices():
    logger.info("=" * 80)
    logger.info("WMI: only working USB devices are candidates")
    working = FakePowerEntry("USB\\A_0")
    stopped = FakePowerEntry("USB\\B_0")
    unrelated = FakePowerEntry("PCI\\C_0")
    devices = [Device("USB\\A", "Hub", "OK"), Device("USB\\B", "Disk", "Error")]

    result = _manager([working, stopped, unrelated]).apply(devices, Mode.DISABLE)

    assert (result.candidates, result.updated, result.failed) == (1, 1, 0)
    assert working.Enable is False and working.saved == 1
    assert stopped.Enable is True and stopped.saved == 0
    assert unrelated.saved == 0


def test_restore_enables_power_saving():
    entry = FakePowerEntry("USB\\A_0", enable=False)
    result = _manager([entry]).apply([Device("USB\\A", "Hub", "OK")], Mode.RESTORE)
    assert result.updated == 1
    assert entry.Enable is True


def test_put_failure_counted():
    entries = [FakePowerEntry("USB\\A_0", fail=True), FakePowerEntry("USB\\B_0")]
    devices = [Device("USB\\A", "Hub", "OK"), Device("USB\\B", "Disk", "OK")]
    result = _manager(entries).apply(devices, Mode.DISABLE)
    assert (result.candidates, result.updated, result.failed) == (2, 1, 1)


def test_unavailable_wmi_is_not_fatal():
    def broken():
        raise OSError("WMI service not running")

    manager = WmiPowerManager(connection_factory=broken)
    result = manager.apply([Device("USB\\A", "Hub", "OK")], Mode.DISABLE)
    assert not result.available
    assert result.candidates == 0
    assert manager.query_states() == {}


def test_report_mode_rejected():
    with pytest.raises(ValueError):
        _manager([]).apply([], Mode.REPORT)


def test_query_states_and_lookup():
    states = _manager([FakePowerEntry("USB\\A_0", enable=False), FakePowerEntry("USB\\B_0")]).query_states()
    assert states == {"USB\\A_0": False, "USB\\B_0": True}
    assert lookup_state(states, "usb\\a") is False
    assert lookup_state(states, "USB\\B") is True
    assert lookup_state(states, "USB\\Z") is None


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
