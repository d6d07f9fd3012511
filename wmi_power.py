"""
WMI device power management
Toggles "Allow the computer to turn off this device to save power"
(root\\wmi MSPower_DeviceEnable) for working USB devices.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from device_enumerator import Device
from device_settings import Mode

logger = logging.getLogger(__name__)

WMI_NAMESPACE = "root\\wmi"


@dataclass
class WmiPowerResult:
    candidates: int = 0
    updated: int = 0
    failed: int = 0
    available: bool = True


def instance_matches(instance_name: str, instance_id: str) -> bool:
    # InstanceName is the PnP device id with a "_0" style suffix
    if not instance_name or not instance_id:
        return False
    name, ident = instance_name.upper(), instance_id.upper()
    return name == ident or name.startswith(ident + "_")


class WmiPowerManager:
    def __init__(self, connection_factory: Optional[Callable[[], Any]] = None):
        self.connection_factory = connection_factory

    def _connect(self):
        if self.connection_factory:
            return self.connection_factory()
        import wmi
        return wmi.WMI(namespace=WMI_NAMESPACE)

    def _entries(self) -> List[Any]:
        w = self._connect()
        return list(w.MSPower_DeviceEnable())

    def apply(self, devices: Iterable[Device], mode: Mode) -> WmiPowerResult:
        if mode not in (Mode.DISABLE, Mode.RESTORE):
            raise ValueError(f"Mode {mode.value} does not modify WMI power settings")

        result = WmiPowerResult()
        live = [d for d in devices if d.is_working and d.instance_id]
        try:
            entries = self._entries()
        except Exception as e:
            logger.warning(f"WMI power management unavailable: {e}")
            result.available = False
            return result

        enable = mode == Mode.RESTORE
        for entry in entries:
            instance_name = str(getattr(entry, "InstanceName", "") or "")
            if not any(instance_matches(instance_name, d.instance_id) for d in live):
                continue
            result.candidates += 1
            try:
                entry.Enable = enable
                entry.Put_()
                result.updated += 1
            except Exception as e:
                result.failed += 1
                logger.warning(f"WMI power setting failed for {instance_name}: {e}")

        logger.info(f"✓ WMI power saving {'enabled' if enable else 'disabled'} on "
                    f"{result.updated}/{result.candidates} device entries")
        return result

    def query_states(self) -> Dict[str, bool]:
        """InstanceName -> power saving allowed; empty when WMI is unavailable"""
        try:
            entries = self._entries()
        except Exception as e:
            logger.debug(f"WMI power query failed: {e}")
            return {}
        return {str(getattr(e, "InstanceName", "")): bool(getattr(e, "Enable", False)) for e in entries}


def lookup_state(states: Dict[str, bool], instance_id: str) -> Optional[bool]:
    for name, enabled in states.items():
        if instance_matches(name, instance_id):
            return enabled
    return None
