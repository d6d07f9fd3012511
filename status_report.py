"""
Device status report
Per-device rows (name, instance id, status, override, WMI power saving) and
their CSV / JSON / plain-text serializations.
"""

import csv
import io
import json
import logging
import socket
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import psutil

from device_enumerator import Device
from device_settings import DeviceSettingsApplier
from service_configurator import ServiceStatusRow
from wmi_power import lookup_state

logger = logging.getLogger(__name__)

REPORT_FORMATS = ('csv', 'json', 'txt')
REPORT_COLUMNS = ('name', 'instance_id', 'status', 'suspend_override', 'wmi_power_saving')


@dataclass
class DeviceStatusRow:
    name: str
    instance_id: str
    status: str
    suspend_override: Optional[bool] = None
    wmi_power_saving: Optional[bool] = None


@dataclass
class StatusReport:
    rows: List[DeviceStatusRow] = field(default_factory=list)
    services: List[ServiceStatusRow] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


def _flag(value: Optional[bool]) -> str:
    if value is None:
        return "Unknown"
    return "Yes" if value else "No"


def report_metadata() -> Dict[str, Any]:
    meta: Dict[str, Any] = {
        'generated': datetime.now().isoformat(timespec='seconds'),
        'host': socket.gethostname(),
    }
    try:
        meta['last_boot'] = datetime.fromtimestamp(psutil.boot_time()).isoformat(timespec='seconds')
    except Exception as e:
        logger.debug(f"Boot time unavailable: {e}")
    return meta


def build_report(devices: Iterable[Device], applier: DeviceSettingsApplier,
                 wmi_states: Optional[Dict[str, bool]] = None) -> StatusReport:
    wmi_states = wmi_states or {}
    rows = [
        DeviceStatusRow(
            name=device.name or "Unknown device",
            instance_id=device.instance_id,
            status=device.status or "Unknown",
            suspend_override=applier.read_override(device),
            wmi_power_saving=lookup_state(wmi_states, device.instance_id),
        )
        for device in devices
    ]
    rows.sort(key=lambda r: (r.name.lower(), r.instance_id.lower()))
    return StatusReport(rows=rows, metadata=report_metadata())


def to_csv(report: StatusReport) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=REPORT_COLUMNS, lineterminator='\n')
    writer.writeheader()
    for row in report.rows:
        data = asdict(row)
        data['suspend_override'] = _flag(row.suspend_override)
        data['wmi_power_saving'] = _flag(row.wmi_power_saving)
        writer.writerow(data)
    return buffer.getvalue()


def to_json(report: StatusReport) -> str:
    return json.dumps(
        {'metadata': report.metadata,
         'devices': [asdict(r) for r in report.rows],
         'services': [asdict(s) for s in report.services]},
        indent=2,
        ensure_ascii=False
    )


def to_text(report: StatusReport) -> str:
    lines = ["USB Device Power Status", "=" * 80]
    for key, value in report.metadata.items():
        lines.append(f"{key.replace('_', ' ').title()}: {value}")
    lines.append("")
    if not report.rows:
        lines.append("(no USB devices found)")
    for row in report.rows:
        lines.append(row.name)
        lines.append(f"  Instance:           {row.instance_id or '-'}")
        lines.append(f"  Status:             {row.status}")
        lines.append(f"  Suspend override:   {_flag(row.suspend_override)}")
        lines.append(f"  WMI power saving:   {_flag(row.wmi_power_saving)}")
    if report.services:
        lines.append("")
        lines.append("Driver services")
        lines.append("-" * 80)
        for svc in report.services:
            flag = "DisableSelectiveSuspend=1" if svc.flag_set else "default"
            lines.append(f"  {svc.name:<10} {svc.state:<10} {flag}  ({svc.label})")
    lines.append("")
    overridden = sum(1 for r in report.rows if r.suspend_override)
    lines.append(f"{len(report.rows)} devices, {overridden} with selective suspend disabled")
    return "\n".join(lines) + "\n"


SERIALIZERS = {'csv': to_csv, 'json': to_json, 'txt': to_text}


def serialize(report: StatusReport, fmt: str) -> str:
    fmt = fmt.lower()
    if fmt not in SERIALIZERS:
        raise ValueError(f"Unknown report format '{fmt}', expected one of {REPORT_FORMATS}")
    return SERIALIZERS[fmt](report)


def default_report_path(report_dir: Path, fmt: str) -> Path:
    stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    return Path(report_dir) / f"usb_power_report_{stamp}.{fmt.lower()}"


def export_report(report: StatusReport, fmt: str, path: Path) -> Path:
    path = Path(path)
    content = serialize(report, fmt)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8', newline='') as f:
        f.write(content)
    logger.info(f"✓ Report written to {path}")
    return path
