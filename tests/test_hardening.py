from __future__ import annotations

import sys
from types import SimpleNamespace

import psutil
import pytest

from keepalive.local.supervisor import hardening
from keepalive.local.supervisor.errors import HardeningWarning

linux_only = pytest.mark.skipif(not sys.platform.startswith('linux'), reason='OOM score is Linux-only')


class _StubProcess:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.nice_value = None

    def nice(self, value):
        if self.error is not None:
            raise self.error
        self.nice_value = value


def _settings(oom_path):
    return SimpleNamespace(NICE_VALUE=-20, OOM_SCORE_ADJ=-1000, OOM_SCORE_ADJ_PATH=oom_path)


@linux_only
def test_harden_sets_priority_and_oom_score(tmp_path, monkeypatch) -> None:
    stub = _StubProcess()
    monkeypatch.setattr(hardening.psutil, 'Process', lambda: stub)
    oom = tmp_path / 'oom_score_adj'
    oom.write_text('0')

    warnings = hardening.harden(_settings(oom))

    assert warnings == []
    assert stub.nice_value == -20
    assert oom.read_text() == '-1000'


@linux_only
def test_harden_reports_denied_priority_without_raising(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(hardening.psutil, 'Process', lambda: _StubProcess(psutil.AccessDenied()))
    oom = tmp_path / 'oom_score_adj'
    oom.write_text('0')

    warnings = hardening.harden(_settings(oom))

    assert len(warnings) == 1
    assert isinstance(warnings[0], HardeningWarning)
    assert oom.read_text() == '-1000'


@linux_only
def test_harden_reports_unwritable_oom_score(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(hardening.psutil, 'Process', lambda: _StubProcess())

    # A directory stands in for a file the process may not write.
    warnings = hardening.harden(_settings(tmp_path))

    assert len(warnings) == 1
    assert 'OOM' in str(warnings[0])


def test_missing_oom_interface_is_a_no_op(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(hardening.psutil, 'Process', lambda: _StubProcess())

    assert hardening.protect_from_oom_killer(-1000, tmp_path / 'absent') is False
    assert not (tmp_path / 'absent').exists()
