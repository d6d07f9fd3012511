"""
Registry access layer
Thin path-based facade over HKEY_LOCAL_MACHINE used by every configuration step
"""

import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

ENUM_ROOT = r"SYSTEM\CurrentControlSet\Enum"
SERVICES_ROOT = r"SYSTEM\CurrentControlSet\Services"
DEVICE_PARAMETERS = "Device Parameters"


def join_path(*parts: str) -> str:
    return "\\".join(p.strip("\\") for p in parts if p and p.strip("\\"))


class RegistryStore:
    """
    Hierarchical key/value store addressed by backslash-delimited paths.

    Contract:
    - create_key is idempotent
    - list_child_keys returns [] for a missing key; access errors raise OSError
    - get_value returns None when the value (or key) is absent
    - remove_value is a no-op when the value (or key) is absent
    - anything else that goes wrong raises OSError
    """

    def key_exists(self, path: str) -> bool:
        raise NotImplementedError

    def create_key(self, path: str) -> None:
        raise NotImplementedError

    def list_child_keys(self, path: str) -> List[str]:
        raise NotImplementedError

    def get_value(self, path: str, name: str) -> Optional[int]:
        raise NotImplementedError

    def set_value(self, path: str, name: str, value: int) -> None:
        raise NotImplementedError

    def remove_value(self, path: str, name: str) -> None:
        raise NotImplementedError


class WinRegistryStore(RegistryStore):
    """RegistryStore over winreg (HKLM, 64-bit view)"""

    def __init__(self):
        import winreg
        self._winreg = winreg
        self._hive = winreg.HKEY_LOCAL_MACHINE
        self._view = winreg.KEY_WOW64_64KEY

    def key_exists(self, path: str) -> bool:
        try:
            with self._winreg.OpenKey(self._hive, path, 0, self._winreg.KEY_READ | self._view):
                return True
        except FileNotFoundError:
            return False
        except PermissionError:
            # Exists but unreadable for this token
            return True

    def create_key(self, path: str) -> None:
        key = self._winreg.CreateKeyEx(self._hive, path, 0, self._winreg.KEY_WRITE | self._view)
        self._winreg.CloseKey(key)

    def list_child_keys(self, path: str) -> List[str]:
        children: List[str] = []
        try:
            with self._winreg.OpenKey(self._hive, path, 0, self._winreg.KEY_READ | self._view) as key:
                index = 0
                while True:
                    try:
                        children.append(self._winreg.EnumKey(key, index))
                    except OSError:
                        break
                    index += 1
        except FileNotFoundError:
            return []
        return children

    def get_value(self, path: str, name: str) -> Optional[int]:
        try:
            with self._winreg.OpenKey(self._hive, path, 0, self._winreg.KEY_READ | self._view) as key:
                value, _ = self._winreg.QueryValueEx(key, name)
                return value
        except FileNotFoundError:
            return None

    def set_value(self, path: str, name: str, value: int) -> None:
        with self._winreg.OpenKey(self._hive, path, 0, self._winreg.KEY_SET_VALUE | self._view) as key:
            self._winreg.SetValueEx(key, name, 0, self._winreg.REG_DWORD, int(value))

    def remove_value(self, path: str, name: str) -> None:
        try:
            with self._winreg.OpenKey(self._hive, path, 0, self._winreg.KEY_SET_VALUE | self._view) as key:
                self._winreg.DeleteValue(key, name)
        except FileNotFoundError:
            logger.debug(f"Nothing to remove: {path}\\{name}")
