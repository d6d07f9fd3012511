"""
test_status_report.py - device status report content and export tests
"""

import csv
import io
import json
import logging

import pytest

from device_enumerator import Device
from device_settings import DeviceSettingsApplier
from registry_store import ENUM_ROOT
from service_configurator import ServiceStatusRow
from status_report import (
    REPORT_COLUMNS, build_report, default_report_path, export_report, report_metadata, serialize
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

HUB = Device("USB\\ROOT_HUB30\\4&1", "USB Root Hub (USB 3.0)", "OK")
MOUSE = Device("USB\\VID_046D&PID_C52B\\5&2", "Generic USB Hub", "OK")
DISK = Device("USBSTOR\\DISK&VEN_X\\1", "", "Error")


@pytest.fixture
def report(store):
    applier = DeviceSettingsApplier(store)
    store.add_key(f"{ENUM_ROOT}\\{HUB.instance_id}\\Device Parameters")
    applier.disable_at(f"{ENUM_ROOT}\\{HUB.instance_id}\\Device Parameters")
    store.add_key(f"{ENUM_ROOT}\\{MOUSE.instance_id}\\Device Parameters")

    result = build_report([HUB, MOUSE, DISK], applier, {"USB\\VID_046D&PID_C52B\\5&2_0": True})
    result.services = [ServiceStatusRow("USBXHCI", "USB xHCI Compliant Host Controller", True, "Running")]
    return result


def test_rows_sorted_with_states(report):
    assert [r.name for r in report.rows] == ["Generic USB Hub", "Unknown device", "USB Root Hub (USB 3.0)"]
    by_id = {r.instance_id: r for r in report.rows}
    assert by_id[HUB.instance_id].suspend_override is True
    assert by_id[MOUSE.instance_id].suspend_override is False
    assert by_id[DISK.instance_id].suspend_override is None
    assert by_id[MOUSE.instance_id].wmi_power_saving is True
    assert by_id[HUB.instance_id].wmi_power_saving is None


def test_metadata_fields():
    meta = report_metadata()
    assert 'generated' in meta
    assert 'host' in meta


def test_csv(report):
    rows = list(csv.DictReader(io.StringIO(serialize(report, 'csv'))))
    assert tuple(rows[0].keys()) == REPORT_COLUMNS
    assert len(rows) == 3
    hub = next(r for r in rows if r['instance_id'] == HUB.instance_id)
    assert hub['suspend_override'] == 'Yes'
    assert hub['wmi_power_saving'] == 'Unknown'


def test_json(report):
    data = json.loads(serialize(report, 'JSON'))
    assert set(data) == {'metadata', 'devices', 'services'}
    assert len(data['devices']) == 3
    assert data['services'][0] == {
        'name': 'USBXHCI', 'label': 'USB xHCI Compliant Host Controller', 'flag_set': True, 'state': 'Running'}


def test_text(report):
    text = serialize(report, 'txt')
    assert "USB Device Power Status" in text
    assert "Suspend override:   Yes" in text
    assert "Driver services" in text
    assert "3 devices, 1 with selective suspend disabled" in text


def test_text_without_devices(store):
    empty = build_report([], DeviceSettingsApplier(store))
    assert "(no USB devices found)" in serialize(empty, 'txt')


def test_unknown_format_rejected(report):
    with pytest.raises(ValueError):
        serialize(report, 'xml')


def test_export_creates_directories(report, tmp_path):
    logger.info("=" * 80)
    logger.info("Report: export writes into a fresh directory")
    target = default_report_path(tmp_path / "reports" / "nested", 'json')
    assert target.suffix == '.json'

    written = export_report(report, 'json', target)

    assert written.exists()
    assert json.loads(written.read_text(encoding='utf-8'))['devices']


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
