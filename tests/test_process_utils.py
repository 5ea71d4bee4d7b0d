from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import sys
import time

import psutil
import pytest

from keepalive.local.supervisor import process_utils
from keepalive.local.supervisor.errors import SpawnError

pytestmark = pytest.mark.skipif(sys.platform == 'win32', reason='POSIX process semantics')


def _wait_for(predicate, timeout=3.0, interval=0.02):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return False


def _script(tmp_path, body: str):
    path = tmp_path / 'worker'
    path.write_text(f'#!{sys.executable}\n{body}\n')
    path.chmod(0o755)
    return path


def test_launch_captures_output_streams(tmp_path, caplog) -> None:
    caplog.set_level(logging.DEBUG)
    target = _script(tmp_path, "import sys\nprint('hello from child', flush=True)\nprint('oops', file=sys.stderr, flush=True)")

    child = process_utils.launch_process(target, 'capture-test')
    assert child.wait(timeout=5.0) == 0

    def _logged(message, level):
        return any(
            r.name == 'proc.capture-test' and r.getMessage() == message and r.levelno == level
            for r in caplog.records
        )

    assert _wait_for(lambda: _logged('hello from child', logging.INFO) and _logged('oops', logging.ERROR))


def test_launch_failure_raises_spawn_error(tmp_path) -> None:
    with pytest.raises(SpawnError):
        process_utils.launch_process(tmp_path / 'missing', 'missing-test')


def test_kill_process_reaps_child_and_descendants(tmp_path) -> None:
    target = _script(
        tmp_path,
        "import subprocess, sys, time\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)'])\n"
        "time.sleep(60)",
    )
    child = process_utils.launch_process(target, 'kill-test')
    assert _wait_for(lambda: len(psutil.Process(child.pid).children()) == 1)
    grandchild = psutil.Process(child.pid).children()[0]

    code = process_utils.kill_process(child, timeout=5.0)

    assert code == -signal.SIGKILL

    def _grandchild_gone():
        try:
            return grandchild.status() == psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return True

    assert _wait_for(_grandchild_gone)


def test_probe_health_flags_stopped_process(tmp_path) -> None:
    target = _script(tmp_path, 'import time\ntime.sleep(60)')
    child = process_utils.launch_process(target, 'probe-test')
    try:
        assert _wait_for(lambda: process_utils.probe_health(child.pid))
        os.kill(child.pid, signal.SIGSTOP)
        assert _wait_for(lambda: not process_utils.probe_health(child.pid))
    finally:
        os.kill(child.pid, signal.SIGCONT)
        process_utils.kill_process(child)


def test_probe_health_ignores_vanished_process() -> None:
    process = subprocess.Popen([sys.executable, '-c', 'pass'])
    process.wait(timeout=5.0)

    assert process_utils.probe_health(process.pid) is True


def test_terminate_strays_spares_own_children(tmp_path) -> None:
    sleep_binary = shutil.which('sleep')
    if not sleep_binary:
        pytest.skip('no sleep binary available')
    target = tmp_path / 'worker'
    shutil.copy2(sleep_binary, target)
    if subprocess.run([str(target), '0'], capture_output=True).returncode != 0:
        pytest.skip('sleep binary cannot run under another name')

    own = subprocess.Popen([str(target), '60'])
    # Detached through a shell so the stray is not a child of this process.
    subprocess.run(['/bin/sh', '-c', f'"{target}" 60 >/dev/null 2>&1 &'], check=True)
    try:
        assert _wait_for(lambda: len(process_utils.find_target_processes(target)) == 2)

        assert process_utils.terminate_strays(target, timeout=3.0) == 1

        assert own.poll() is None
        assert _wait_for(lambda: [p.pid for p in process_utils.find_target_processes(target)] == [own.pid])
    finally:
        for proc in process_utils.find_target_processes(target):
            proc.kill()
        own.kill()
        own.wait(timeout=5.0)
