"""
Per-device power-management overrides
Resolves devices to their Device Parameters keys and applies (DISABLE) or
removes (RESTORE) the selective-suspend override values.

RESTORE deletes the values instead of writing 1: an absent value is the
driver's unmanaged default, a value of 1 is an explicit "enabled" state.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from device_enumerator import Device
from registry_store import DEVICE_PARAMETERS, ENUM_ROOT, RegistryStore, join_path

logger = logging.getLogger(__name__)

POWER_SETTING_NAMES = (
    "EnhancedPowerManagementEnabled",
    "SelectiveSuspendEnabled",
    "AllowIdleIrpInD3",
)
DISABLED_VALUE = 0


class Mode(Enum):
    DISABLE = "disable"
    RESTORE = "restore"
    REPORT = "report"


class PathKind(Enum):
    DIRECT = "direct"
    INSTANCE_SUBKEY = "instance_subkey"


class DeviceOutcome(Enum):
    MODIFIED = "modified"
    FAILED = "failed"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class ConfigurationPath:
    path: str
    kind: PathKind


@dataclass
class DeviceResult:
    device: Device
    paths: List[ConfigurationPath] = field(default_factory=list)
    path_results: Dict[str, bool] = field(default_factory=dict)
    outcome: DeviceOutcome = DeviceOutcome.NOT_APPLICABLE


@dataclass
class AggregateOutcome:
    """Pass-local device counters; NOT_APPLICABLE is reported as failed"""
    modified: int = 0
    failed: int = 0
    not_applicable: int = 0

    def record(self, outcome: DeviceOutcome):
        if outcome == DeviceOutcome.MODIFIED:
            self.modified += 1
        elif outcome == DeviceOutcome.FAILED:
            self.failed += 1
        else:
            self.not_applicable += 1

    @property
    def reported_failed(self) -> int:
        return self.failed + self.not_applicable

    @property
    def total(self) -> int:
        return self.modified + self.failed + self.not_applicable


def aggregate_device(device: Device, paths: List[ConfigurationPath],
                     path_results: Dict[str, bool]) -> DeviceResult:
    if not paths:
        outcome = DeviceOutcome.NOT_APPLICABLE
    elif any(path_results.get(p.path, False) for p in paths):
        outcome = DeviceOutcome.MODIFIED
    else:
        outcome = DeviceOutcome.FAILED
    return DeviceResult(device=device, paths=list(paths), path_results=dict(path_results), outcome=outcome)


class ConfigurationPathResolver:
    def __init__(self, store: RegistryStore, enum_root: str = ENUM_ROOT):
        self.store = store
        self.enum_root = enum_root

    def resolve(self, instance_id: str, create_missing: bool = False) -> List[ConfigurationPath]:
        """
        Resolve a device instance to its parameter keys.

        Args:
            instance_id: Device instance path (e.g. USB\\VID_1234&PID_5678\\0001)
            create_missing: Create Device Parameters under instance subkeys that lack one

        Returns:
            Direct path first (if it exists), then subkey paths in listing order
        """
        if not instance_id or not instance_id.strip("\\"):
            return []

        device_root = join_path(self.enum_root, instance_id)
        resolved: List[ConfigurationPath] = []

        direct = join_path(device_root, DEVICE_PARAMETERS)
        try:
            if self.store.key_exists(direct):
                resolved.append(ConfigurationPath(direct, PathKind.DIRECT))
        except OSError as e:
            logger.warning(f"Cannot check {direct}: {e}")

        try:
            children = self.store.list_child_keys(device_root)
        except OSError as e:
            logger.warning(f"Cannot list instance subkeys of {instance_id}: {e}")
            return resolved

        for child in children:
            if child.lower() == DEVICE_PARAMETERS.lower():
                continue
            candidate = join_path(device_root, child, DEVICE_PARAMETERS)
            try:
                if self.store.key_exists(candidate):
                    resolved.append(ConfigurationPath(candidate, PathKind.INSTANCE_SUBKEY))
                elif create_missing:
                    self.store.create_key(candidate)
                    resolved.append(ConfigurationPath(candidate, PathKind.INSTANCE_SUBKEY))
            except OSError as e:
                logger.debug(f"Skipping {candidate}: {e}")

        return resolved


class DeviceSettingsApplier:
    def __init__(self, store: RegistryStore, resolver: Optional[ConfigurationPathResolver] = None):
        self.store = store
        self.resolver = resolver or ConfigurationPathResolver(store)

    def disable_at(self, path: str) -> bool:
        """
        Write the disabling record at one parameter key, creating the key if needed.

        Args:
            path: Registry path of a Device Parameters key

        Returns:
            True only if the key exists afterwards and all three values were written
        """
        try:
            self.store.create_key(path)
        except OSError as e:
            logger.warning(f"Cannot create {path}: {e}")
            return False

        ok = True
        for name in POWER_SETTING_NAMES:
            try:
                self.store.set_value(path, name, DISABLED_VALUE)
            except OSError as e:
                logger.warning(f"Failed to set {name} at {path}: {e}")
                ok = False
        return ok

    def restore_at(self, path: str) -> bool:
        """
        Remove the disabling record from one parameter key.

        Values (or the key) already absent count as restored.

        Args:
            path: Registry path of a Device Parameters key

        Returns:
            False if any value could not be removed
        """
        ok = True
        for name in POWER_SETTING_NAMES:
            try:
                self.store.remove_value(path, name)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to remove {name} at {path}: {e}")
                ok = False
        return ok

    def apply_to_path(self, path: ConfigurationPath, mode: Mode) -> bool:
        if mode == Mode.DISABLE:
            return self.disable_at(path.path)
        if mode == Mode.RESTORE:
            return self.restore_at(path.path)
        raise ValueError(f"Mode {mode.value} does not modify settings")

    def apply_to_device(self, device: Device, mode: Mode) -> DeviceResult:
        """
        Apply a mode to every parameter key of one device.

        Missing subkey parameter keys are created for DISABLE only. A failing
        path never stops the remaining paths.

        Args:
            device: Device to configure
            mode: Mode.DISABLE or Mode.RESTORE

        Returns:
            DeviceResult with per-path results and the tri-state outcome
        """
        try:
            paths = self.resolver.resolve(device.instance_id, create_missing=(mode == Mode.DISABLE))
        except OSError as e:
            logger.warning(f"Path resolution failed for {device.label}: {e}")
            paths = []

        path_results: Dict[str, bool] = {}
        for path in paths:
            path_results[path.path] = self.apply_to_path(path, mode)

        result = aggregate_device(device, paths, path_results)
        if result.outcome == DeviceOutcome.MODIFIED:
            done = sum(1 for ok in path_results.values() if ok)
            logger.info(f"✓ {device.label}: {done}/{len(paths)} parameter keys updated")
        elif result.outcome == DeviceOutcome.FAILED:
            logger.warning(f"{device.label}: all {len(paths)} parameter keys failed")
        else:
            logger.warning(f"{device.label}: no Device Parameters key found")
        return result

    def apply_to_devices(self, devices: Iterable[Device], mode: Mode):
        outcome = AggregateOutcome()
        results: List[DeviceResult] = []
        for device in devices:
            result = self.apply_to_device(device, mode)
            outcome.record(result.outcome)
            results.append(result)
        return outcome, results

    def read_override(self, device: Device) -> Optional[bool]:
        """
        True if any existing parameter key carries the full disabling record,
        False if keys exist without it, None if the device has no keys.
        """
        try:
            paths = self.resolver.resolve(device.instance_id, create_missing=False)
        except OSError:
            return None
        if not paths:
            return None
        for path in paths:
            try:
                values = [self.store.get_value(path.path, name) for name in POWER_SETTING_NAMES]
            except OSError:
                continue
            if all(v == DISABLED_VALUE for v in values):
                return True
        return False
