from __future__ import annotations

import itertools

import pytest

from keepalive.local.supervisor import process_utils
from keepalive.local.supervisor.errors import SpawnError

_pids = itertools.count(40_000)


class FakeChild:
    """Stands in for subprocess.Popen. `status` is what the next poll() returns."""

    def __init__(self) -> None:
        self.pid = next(_pids)
        self.status = None
        self.poll_error: Exception | None = None
        self.killed = False

    def poll(self):
        if self.poll_error is not None:
            raise self.poll_error
        return self.status


class FakeProcesses:
    """Records launches, kills and stray sweeps made through process_utils."""

    def __init__(self) -> None:
        self.children: list[FakeChild] = []
        self.launch_calls: list[str] = []
        self.failing_names: set[str] = set()
        self.failures_left = 0
        self.stray_sweeps = 0

    def launch(self, target, name):
        self.launch_calls.append(name)
        if name in self.failing_names or self.failures_left:
            self.failures_left = max(self.failures_left - 1, 0)
            raise SpawnError(f'cannot start {target}')
        child = FakeChild()
        child.owner = name
        self.children.append(child)
        return child

    def kill(self, child, timeout=5.0):
        child.killed = True
        child.status = -9
        return -9

    def terminate_strays(self, target, timeout=3.0):
        self.stray_sweeps += 1
        return 0

    def children_of(self, name):
        return [child for child in self.children if child.owner == name]


@pytest.fixture
def fake_processes(monkeypatch) -> FakeProcesses:
    fakes = FakeProcesses()
    monkeypatch.setattr(process_utils, 'launch_process', fakes.launch)
    monkeypatch.setattr(process_utils, 'kill_process', fakes.kill)
    monkeypatch.setattr(process_utils, 'terminate_strays', fakes.terminate_strays)
    return fakes

