"""
Device enumeration
Modern inventory (Get-PnpDevice) with legacy WMI Win32_PnPEntity fallback.
Both backends normalize to the same Device record.
"""

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

CommandRunner = Callable[[List[str]], subprocess.CompletedProcess]

PNP_DEVICE_QUERY = (
    "Get-PnpDevice -ErrorAction Stop | "
    "Select-Object InstanceId, FriendlyName, Status, Class, Manufacturer | "
    "ConvertTo-Json -Compress"
)


class DeviceEnumerationError(Exception):
    """A backend could not produce a device list"""
    pass


@dataclass(frozen=True)
class Device:
    instance_id: str
    name: str
    status: str
    device_class: str = ""
    manufacturer: str = ""

    @property
    def is_working(self) -> bool:
        return self.status.strip().upper() == "OK"

    @property
    def label(self) -> str:
        return self.name or self.instance_id or "Unknown device"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def run_command(cmd: List[str], timeout: float = 30) -> subprocess.CompletedProcess:
    """Run a system utility without a console window; never raises"""
    try:
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            errors='replace',
            check=False,
            timeout=timeout,
            creationflags=getattr(subprocess, 'CREATE_NO_WINDOW', 0)
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Command {cmd[0]} failed to run: {e}")
        return subprocess.CompletedProcess(cmd, 1, "", str(e))


class DeviceBackend:
    name = "backend"

    def list_devices(self) -> List[Device]:
        raise NotImplementedError


class PnpDeviceBackend(DeviceBackend):
    """PowerShell Get-PnpDevice (Windows 8 and later)"""

    name = "Get-PnpDevice"

    def __init__(self, runner: Optional[CommandRunner] = None, timeout: float = 30):
        self.timeout = timeout
        self.runner = runner or (lambda cmd: run_command(cmd, timeout=self.timeout))

    def list_devices(self) -> List[Device]:
        result = self.runner(["powershell", "-NoProfile", "-ExecutionPolicy", "Bypass",
                              "-Command", PNP_DEVICE_QUERY])
        if result.returncode != 0:
            raise DeviceEnumerationError(
                f"Get-PnpDevice exited with {result.returncode}: {(result.stderr or '').strip()}")

        raw = (result.stdout or "").strip()
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DeviceEnumerationError(f"Get-PnpDevice returned invalid JSON: {e}") from e

        # ConvertTo-Json emits a bare object for a single result
        if isinstance(data, dict):
            data = [data]
        return [self._normalize(item) for item in data if isinstance(item, dict)]

    @staticmethod
    def _normalize(item: Dict[str, Any]) -> Device:
        return Device(
            instance_id=_text(item.get("InstanceId")),
            name=_text(item.get("FriendlyName")),
            status=_text(item.get("Status")),
            device_class=_text(item.get("Class")),
            manufacturer=_text(item.get("Manufacturer")),
        )


class WmiDeviceBackend(DeviceBackend):
    """WMI Win32_PnPEntity through the wmi package"""

    name = "Win32_PnPEntity"

    def __init__(self, connection_factory: Optional[Callable[[], Any]] = None):
        self.connection_factory = connection_factory

    def _connect(self):
        if self.connection_factory:
            return self.connection_factory()
        import wmi
        return wmi.WMI()

    def list_devices(self) -> List[Device]:
        w = self._connect()
        return [self._normalize(entity) for entity in w.Win32_PnPEntity()]

    @staticmethod
    def _normalize(entity: Any) -> Device:
        return Device(
            instance_id=_text(getattr(entity, "PNPDeviceID", None) or getattr(entity, "DeviceID", None)),
            name=_text(getattr(entity, "Name", None) or getattr(entity, "Caption", None)),
            status=_text(getattr(entity, "Status", None)),
            device_class=_text(getattr(entity, "PNPClass", None)),
            manufacturer=_text(getattr(entity, "Manufacturer", None)),
        )


class DeviceEnumerator:
    """Tries each backend in order; a backend is used only if every earlier one raised"""

    def __init__(self, backends: Optional[Sequence[DeviceBackend]] = None, timeout: float = 30):
        self.backends: List[DeviceBackend] = list(backends) if backends is not None else [
            PnpDeviceBackend(timeout=timeout),
            WmiDeviceBackend(),
        ]
        self.last_backend: Optional[str] = None

    def enumerate(self) -> List[Device]:
        self.last_backend = None
        for backend in self.backends:
            try:
                devices = backend.list_devices()
            except Exception as e:
                logger.warning(f"Device enumeration via {backend.name} failed: {e}")
                continue
            self.last_backend = backend.name
            logger.info(f"✓ Enumerated {len(devices)} devices via {backend.name}")
            return devices

        logger.warning("All device enumeration methods failed; continuing with zero devices")
        return []


def filter_devices(devices: Iterable[Device], predicate: Callable[[Device], bool]) -> List[Device]:
    return [d for d in devices if predicate(d)]
