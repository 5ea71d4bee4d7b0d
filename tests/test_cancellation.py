from __future__ import annotations

import signal
import threading

import pytest

from keepalive.local.supervisor import cancellation
from keepalive.local.supervisor.cancellation import CancellationFlag


@pytest.fixture(autouse=True)
def stock_sigint_handler():
    previous = signal.getsignal(signal.SIGINT)
    signal.signal(signal.SIGINT, signal.default_int_handler)
    yield
    signal.signal(signal.SIGINT, previous)


def test_flag_only_moves_to_stopping() -> None:
    flag = CancellationFlag()
    assert not flag.is_stopping()

    flag.request_stop()
    flag.request_stop()

    assert flag.is_stopping()
    assert 'stopping' in repr(flag)


def test_install_routes_interrupt_to_flag() -> None:
    flag = cancellation.install()
    assert flag.supported

    handler = signal.getsignal(signal.SIGINT)
    handler(signal.SIGINT, None)

    assert flag.is_stopping()


def test_install_refuses_second_handler() -> None:
    first = cancellation.install()
    second = cancellation.install()

    assert first.supported
    assert not second.supported
    signal.getsignal(signal.SIGINT)(signal.SIGINT, None)
    assert first.is_stopping()
    assert not second.is_stopping()


def test_install_off_main_thread_degrades() -> None:
    results = []
    thread = threading.Thread(target=lambda: results.append(cancellation.install()))
    thread.start()
    thread.join(timeout=2.0)

    assert len(results) == 1
    assert not results[0].supported
    assert not results[0].is_stopping()
