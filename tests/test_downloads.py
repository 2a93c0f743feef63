from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from fakes import FakeDownload
from portal_report_sync.errors import PersistError
from portal_report_sync.models import ReportRequest
from portal_report_sync.portal.downloads import DownloadMaterializer, safe_name


REQ = ReportRequest(label="Pólizas en condiciones de ser rehabilitadas", file_stem="rehabilitadas")
T0 = datetime(2025, 3, 14, 9, 30, 15, 999_000, tzinfo=timezone.utc)


class _Clock:
    def __init__(self, *times: datetime) -> None:
        self.times = list(times)

    def __call__(self) -> datetime:
        return self.times.pop(0)


def test_path_is_account_stem_timestamp(tmp_path: Path) -> None:
    m = DownloadMaterializer(tmp_path, clock=_Clock(T0))
    art = m.materialize(FakeDownload(), "asesor01", REQ)

    assert art.path == tmp_path / "asesor01_rehabilitadas_20250314_093015.xls"
    assert art.path.read_bytes() == b"xls"
    assert art.account == "asesor01"
    assert art.report_label == REQ.label
    assert art.timestamp == T0


def test_downloads_one_second_apart_do_not_collide(tmp_path: Path) -> None:
    m = DownloadMaterializer(tmp_path, clock=_Clock(T0, T0 + timedelta(seconds=1)))
    a = m.materialize(FakeDownload(b"a"), "asesor01", REQ)
    b = m.materialize(FakeDownload(b"b"), "asesor01", REQ)

    assert a.path != b.path
    assert a.path.read_bytes() == b"a"
    assert b.path.read_bytes() == b"b"


def test_same_second_gets_a_suffix(tmp_path: Path) -> None:
    m = DownloadMaterializer(tmp_path, clock=_Clock(T0, T0))
    a = m.materialize(FakeDownload(b"a"), "asesor01", REQ)
    b = m.materialize(FakeDownload(b"b"), "asesor01", REQ)

    assert b.path.name == "asesor01_rehabilitadas_20250314_093015-2.xls"
    assert a.path.read_bytes() == b"a"


def test_creates_destination_directory(tmp_path: Path) -> None:
    dest = tmp_path / "reports" / "bse"
    art = DownloadMaterializer(dest, clock=_Clock(T0)).materialize(FakeDownload(), "u", REQ)
    assert art.path.parent == dest


def test_failed_save_raises_persist_error(tmp_path: Path) -> None:
    m = DownloadMaterializer(tmp_path, clock=_Clock(T0))
    with pytest.raises(PersistError):
        m.materialize(FakeDownload(fail=True), "u", REQ)


def test_safe_name_keeps_email_like_accounts() -> None:
    assert safe_name("ana.perez@corredor.uy") == "ana.perez@corredor.uy"
    assert safe_name("a b/c") == "a_b_c"
    assert safe_name("  ") == "unknown"
