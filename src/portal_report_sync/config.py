from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, Field, model_validator

from .models import Credential, ReportRequest
from .portals import KNOWN_PORTALS, PortalProfile, get_portal


logger = logging.getLogger(__name__)

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{([A-Z0-9_]+)(?::-([^}]*))?\}")
_MAX_ENV_ACCOUNTS = 50
_TRUTHY = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY = frozenset({"0", "false", "f", "no", "n", "off"})


def _expand_env_vars(value: object) -> object:
    """
    Substitute `${NAME}` references in every string of a parsed YAML tree. Unset names become the
    `:-fallback` text, or "" without one, so a missing password reads as blank instead of the literal.
    """
    if isinstance(value, dict):
        return {key: _expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    if not isinstance(value, str):
        return value
    return _ENV_REF.sub(lambda m: os.environ.get(m.group(1)) or (m.group(2) or ""), value)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    if raw:
        logger.warning("Ignoring %s=%r (expected a yes/no value).", name, raw)
    return default


def _deep_merge(base: object, override: object) -> object:
    if not (isinstance(base, dict) and isinstance(override, dict)):
        return override
    merged = dict(base)
    for key, value in override.items():
        # An empty YAML key (`output:`) parses as None and keeps the default.
        if value is None:
            continue
        merged[key] = _deep_merge(merged[key], value) if key in merged else value
    return merged


def _accounts_from_env(prefix: str) -> list[dict]:
    """
    Read numbered credentials: `{PREFIX}_USER_1` / `{PREFIX}_PASS_1`, `{PREFIX}_USER_2` ... until the first gap.
    """
    prefix = (prefix or "").strip().upper()
    if not prefix:
        return []
    out: list[dict] = []
    for n in range(1, _MAX_ENV_ACCOUNTS + 1):
        user = os.getenv(f"{prefix}_USER_{n}")
        password = os.getenv(f"{prefix}_PASS_{n}")
        if user is None and password is None:
            break
        out.append({"username": user or "", "password": password or ""})
    return out


def _default_config_from_env() -> dict:
    """
    Env-only config so a `.env` with PORTAL + numbered credentials is enough; YAML is an optional override.
    """
    cfg: dict = {
        "portal": os.getenv("PORTAL", ""),
        "polling": {},
        "output": {
            "download_dir": os.getenv("DOWNLOAD_DIR", ""),
            "results_path": os.getenv("RESULTS_PATH", ""),
        },
        "browser": {
            "headless": _env_bool("BROWSER_HEADLESS", default=True),
        },
        "debug": {
            "dir": os.getenv("DEBUG_DIR", "data/debug"),
            "step_debug": _env_bool("STEP_DEBUG"),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/run.log"),
        },
    }
    if os.getenv("POLL_MAX_ATTEMPTS"):
        cfg["polling"]["max_attempts"] = int(os.getenv("POLL_MAX_ATTEMPTS", "40"))
    if os.getenv("POLL_INTERVAL_SECONDS"):
        cfg["polling"]["interval_seconds"] = float(os.getenv("POLL_INTERVAL_SECONDS", "15"))
    return cfg


class AccountConfig(BaseModel):
    username: str = ""
    password: str = Field(default="", repr=False)

    def credential(self) -> Credential:
        return Credential(username=self.username.strip(), password=self.password)


class ReportConfig(BaseModel):
    label: str
    file_stem: str

    def request(self) -> ReportRequest:
        return ReportRequest(label=self.label, file_stem=self.file_stem)


class PollingConfig(BaseModel):
    # Worst case per report: max_attempts * interval_seconds (defaults: 40 * 15s = 10 minutes).
    max_attempts: int = Field(default=40, ge=1)
    interval_seconds: float = Field(default=15.0, ge=0)
    error_tokens: list[str] = Field(default_factory=lambda: ["error"])


class OutputConfig(BaseModel):
    download_dir: str = ""
    results_path: str = ""
    # Drop records repeating (account, filter, <field>). Empty keeps duplicates.
    dedupe_field: str = ""


class BrowserConfig(BaseModel):
    headless: bool = True
    slow_mo_ms: int = 0
    ignore_https_errors: bool = True
    viewport_width: int = 1280
    viewport_height: int = 720


class DebugConfig(BaseModel):
    dir: str = "data/debug"
    step_debug: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/run.log"


class AppConfig(BaseModel):
    portal: str
    accounts: list[AccountConfig] = Field(default_factory=list)
    reports: list[ReportConfig] = Field(default_factory=list)
    filters: list[str] = Field(default_factory=list)
    polling: PollingConfig = PollingConfig()
    output: OutputConfig = OutputConfig()
    browser: BrowserConfig = BrowserConfig()
    debug: DebugConfig = DebugConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def _fill_defaults_and_validate(self) -> "AppConfig":
        slug = (self.portal or "").strip().lower()
        if not slug:
            raise ValueError(f"portal is required (one of: {', '.join(sorted(KNOWN_PORTALS))})")
        profile = get_portal(slug)
        self.portal = slug

        kept = [a for a in self.accounts if a.username.strip()]
        if len(kept) != len(self.accounts):
            logger.warning("Ignoring %d account(s) with an empty username.", len(self.accounts) - len(kept))
        self.accounts = kept

        if not self.reports and profile.flow == "reports":
            self.reports = [ReportConfig(label=r.label, file_stem=r.file_stem) for r in profile.default_reports]
        if not self.filters and profile.flow == "extraction":
            self.filters = list(profile.default_filters)

        if not self.output.download_dir:
            self.output.download_dir = f"reports/{slug}"
        if not self.output.results_path:
            self.output.results_path = f"reports/{slug}/{slug}-output.json"
        return self

    def profile(self) -> PortalProfile:
        return get_portal(self.portal)

    def credentials(self) -> list[Credential]:
        return [a.credential() for a in self.accounts]

    def report_requests(self) -> list[ReportRequest]:
        return [r.request() for r in self.reports]


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    assert isinstance(merged, dict)

    # Accounts default to numbered env credentials for the chosen portal.
    if not merged.get("accounts"):
        slug = str(merged.get("portal") or "").strip().lower()
        prefix = os.getenv("ACCOUNT_ENV_PREFIX", "")
        if not prefix and slug in KNOWN_PORTALS:
            prefix = KNOWN_PORTALS[slug].env_prefix
        merged["accounts"] = _accounts_from_env(prefix)

    return AppConfig.model_validate(merged)
