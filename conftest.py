"""
Shared test fixtures: an in-memory RegistryStore and a scripted command runner
"""

import subprocess
from typing import Dict, List, Optional, Set, Tuple

import pytest

from registry_store import RegistryStore


class MemoryRegistryStore(RegistryStore):
    """Case-insensitive in-memory registry with injectable access failures"""

    def __init__(self):
        self.keys: Dict[str, Tuple[str, Dict[str, int]]] = {}
        self.deny_list: Set[str] = set()
        self.deny_write: Set[str] = set()
        self.deny_create: Set[str] = set()
        self.calls: List[Tuple[str, str]] = []

    @staticmethod
    def _norm(path: str) -> str:
        return path.strip("\\").lower()

    def add_key(self, path: str, **values: int):
        parts = path.strip("\\").split("\\")
        for i in range(1, len(parts) + 1):
            sub = "\\".join(parts[:i])
            self.keys.setdefault(self._norm(sub), (sub, {}))
        self.keys[self._norm(path)][1].update(values)

    def values(self, path: str) -> Dict[str, int]:
        return dict(self.keys[self._norm(path)][1])

    def key_exists(self, path: str) -> bool:
        self.calls.append(("key_exists", path))
        return self._norm(path) in self.keys

    def create_key(self, path: str) -> None:
        self.calls.append(("create_key", path))
        if self._norm(path) in {self._norm(p) for p in self.deny_create}:
            raise PermissionError(f"Access is denied: {path}")
        self.add_key(path)

    def list_child_keys(self, path: str) -> List[str]:
        self.calls.append(("list_child_keys", path))
        norm = self._norm(path)
        if norm in {self._norm(p) for p in self.deny_list}:
            raise PermissionError(f"Access is denied: {path}")
        children = []
        for key, (original, _) in self.keys.items():
            if key.startswith(norm + "\\") and "\\" not in key[len(norm) + 1:]:
                children.append(original.split("\\")[-1])
        return children

    def get_value(self, path: str, name: str) -> Optional[int]:
        self.calls.append(("get_value", path))
        entry = self.keys.get(self._norm(path))
        if entry is None:
            return None
        return entry[1].get(name)

    def set_value(self, path: str, name: str, value: int) -> None:
        self.calls.append(("set_value", path))
        if self._norm(path) in {self._norm(p) for p in self.deny_write}:
            raise PermissionError(f"Access is denied: {path}")
        entry = self.keys.get(self._norm(path))
        if entry is None:
            raise FileNotFoundError(path)
        entry[1][name] = value

    def remove_value(self, path: str, name: str) -> None:
        self.calls.append(("remove_value", path))
        if self._norm(path) in {self._norm(p) for p in self.deny_write}:
            raise PermissionError(f"Access is denied: {path}")
        entry = self.keys.get(self._norm(path))
        if entry is not None:
            entry[1].pop(name, None)


class ScriptedRunner:
    """Command runner that answers from a table keyed by the first arguments"""

    def __init__(self, responses: Optional[Dict[Tuple[str, ...], Tuple[int, str]]] = None,
                 default: Tuple[int, str] = (0, "")):
        self.responses = responses or {}
        self.default = default
        self.commands: List[List[str]] = []

    def __call__(self, cmd: List[str]) -> subprocess.CompletedProcess:
        self.commands.append(list(cmd))
        for prefix, (code, out) in self.responses.items():
            if tuple(cmd[:len(prefix)]) == prefix:
                return subprocess.CompletedProcess(cmd, code, out, "" if code == 0 else "error")
        code, out = self.default
        return subprocess.CompletedProcess(cmd, code, out, "")


@pytest.fixture
def store():
    return MemoryRegistryStore()


@pytest.fixture
def runner():
    return ScriptedRunner()


@pytest.fixture
def make_runner():
    return ScriptedRunner
