from __future__ import annotations

from pathlib import Path

import pytest

from portal_report_sync.config import load_config


_ENV_KEYS = (
    "PORTAL",
    "ACCOUNT_ENV_PREFIX",
    "DOWNLOAD_DIR",
    "RESULTS_PATH",
    "POLL_MAX_ATTEMPTS",
    "POLL_INTERVAL_SECONDS",
    "BSE_USER_1",
    "BSE_PASS_1",
    "BSE_USER_2",
    "BSE_PASS_2",
    "BSE_USER_3",
    "BSE_PASS_3",
    "PORTO_USER_1",
    "PORTO_PASS_1",
    "STEP_DEBUG",
    "BROWSER_HEADLESS",
    "DEBUG_DIR",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write(tmp_path: Path, name: str, text: str) -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def test_env_only_config_reads_numbered_accounts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORTAL", "bse")
    monkeypatch.setenv("BSE_USER_1", "asesor01")
    monkeypatch.setenv("BSE_PASS_1", "p1")
    monkeypatch.setenv("BSE_USER_2", "asesor02")
    monkeypatch.setenv("BSE_PASS_2", "p2")

    cfg = load_config(tmp_path / "missing.yaml")

    assert [c.username for c in cfg.credentials()] == ["asesor01", "asesor02"]
    assert [r.file_stem for r in cfg.reports] == ["facturas12dias", "rehabilitadas"]
    assert cfg.polling.max_attempts == 40
    assert cfg.polling.interval_seconds == 15.0
    assert cfg.output.download_dir == "reports/bse"
    assert cfg.filters == []


def test_blank_env_accounts_are_dropped(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORTAL", "porto")
    monkeypatch.setenv("PORTO_USER_1", "")
    monkeypatch.setenv("PORTO_PASS_1", "")

    cfg = load_config(tmp_path / "missing.yaml")

    assert cfg.accounts == []
    assert len(cfg.filters) == 6
    assert cfg.output.results_path == "reports/porto/porto-output.json"


def test_yaml_overrides_and_expands_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MY_PASS", "from-env")
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        """
portal: porto
accounts:
  - username: "corredor"
    password: "${MY_PASS}"
filters: ["Más de 90 días"]
polling:
  max_attempts: 3
  interval_seconds: 0.5
output:
  results_path: "out/porto.json"
  dedupe_field: policy
""",
    )
    cfg = load_config(cfg_path)

    assert cfg.credentials()[0].password == "from-env"
    assert cfg.filters == ["Más de 90 días"]
    assert cfg.polling.max_attempts == 3
    assert cfg.output.results_path == "out/porto.json"
    assert cfg.output.dedupe_field == "policy"
    assert cfg.profile().flow == "extraction"


def test_unknown_portal_rejected(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, "cfg.yaml", "portal: nope\n")
    with pytest.raises(Exception):
        load_config(cfg_path)


def test_portal_required(tmp_path: Path) -> None:
    with pytest.raises(Exception):
        load_config(tmp_path / "missing.yaml")


def test_zero_attempts_rejected(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, "cfg.yaml", "portal: bse\npolling:\n  max_attempts: 0\n")
    with pytest.raises(Exception):
        load_config(cfg_path)


def test_password_hidden_from_repr(tmp_path: Path) -> None:
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        """
portal: bse
accounts:
  - username: "asesor01"
    password: "hunter2"
""",
    )
    cfg = load_config(cfg_path)
    assert "hunter2" not in repr(cfg)


def test_env_reference_fallback_and_empty_sections(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PORTO_DEBUG_DIR", raising=False)
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        """
portal: porto
output:
polling:
debug:
  dir: "${PORTO_DEBUG_DIR:-data/porto-debug}"
""",
    )
    cfg = load_config(cfg_path)

    assert cfg.debug.dir == "data/porto-debug"
    assert cfg.polling.max_attempts == 40
    assert cfg.output.results_path == "reports/porto/porto-output.json"


def test_step_debug_and_headless_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORTAL", "bse")
    monkeypatch.setenv("STEP_DEBUG", "yes")
    monkeypatch.setenv("BROWSER_HEADLESS", "off")

    cfg = load_config(tmp_path / "missing.yaml")

    assert cfg.debug.step_debug is True
    assert cfg.browser.headless is False


def test_unreadable_bool_keeps_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORTAL", "bse")
    monkeypatch.setenv("BROWSER_HEADLESS", "maybe")
    assert load_config(tmp_path / "missing.yaml").browser.headless is True
