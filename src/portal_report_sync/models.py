from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .errors import (
    BackendError,
    InvalidTransitionError,
    OptionUnavailableError,
    PollTimeoutError,
)


@dataclass(frozen=True)
class Credential:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class Waypoint:
    """
    One navigation step: wait for `selector`, interact with it, then let the portal settle.

    `select` picks `option_label` from a <select> element.
    """

    name: str
    selector: str
    action: Literal["hover", "click", "select"] = "click"
    option_label: str = ""
    settle_ms: int = 0
    timeout_ms: int = 10_000


@dataclass(frozen=True)
class NavigationTarget:
    name: str
    waypoints: tuple[Waypoint, ...] = ()


@dataclass(frozen=True)
class ReportRequest:
    label: str
    file_stem: str


class ReportStatus(str, enum.Enum):
    PENDING = "pending"
    READY = "ready"
    ERROR = "error"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self is not ReportStatus.PENDING


class ReportProgress:
    """
    Status of one report request. Moves Pending -> Ready | Error | TimedOut and never back.
    """

    def __init__(self, request: ReportRequest) -> None:
        self.request = request
        self.status = ReportStatus.PENDING
        self.history: list[ReportStatus] = [ReportStatus.PENDING]

    def advance(self, status: ReportStatus) -> ReportStatus:
        if self.status.is_terminal:
            raise InvalidTransitionError(
                f"{self.request.label!r} is already {self.status.value}; cannot move to {status.value}"
            )
        if status is not ReportStatus.PENDING:
            self.status = status
            self.history.append(status)
        return self.status


FailureKind = Literal["option_unavailable", "backend", "timeout"]


@dataclass
class ReportOutcome:
    request: ReportRequest
    status: ReportStatus
    attempts: int = 0
    download: Any = None
    failure: Optional[FailureKind] = None
    last_status_text: str = ""
    history: list[ReportStatus] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return self.status is ReportStatus.READY

    def raise_for_status(self) -> None:
        if self.status is ReportStatus.READY:
            return
        label = self.request.label
        if self.failure == "option_unavailable":
            raise OptionUnavailableError(label)
        if self.status is ReportStatus.ERROR:
            raise BackendError(label, self.last_status_text)
        raise PollTimeoutError(label, self.attempts)


class ExtractedRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    account: str
    filter: str
    fields: Mapping[str, str] = Field(default_factory=dict, validate_default=True)

    @field_validator("fields", mode="after")
    @classmethod
    def _freeze_fields(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        # Read-only copy, detached from the caller's dict.
        return MappingProxyType(dict(value))

    @field_serializer("fields")
    def _dump_fields(self, value: Mapping[str, str]) -> dict[str, str]:
        return dict(value)

    def as_row(self) -> dict[str, str]:
        row = {"account": self.account, "filter": self.filter}
        row.update(self.fields)
        return row


@dataclass(frozen=True)
class DownloadArtifact:
    path: Path
    account: str
    report_label: str
    timestamp: datetime


@dataclass(frozen=True)
class TableLayout:
    """
    How to read a results grid: which cell index feeds which field, and what the portal shows for "no results".
    """

    columns: Mapping[str, int]
    sentinel: str = ""
    min_columns: int = 0

    @property
    def required_columns(self) -> int:
        widest = max(self.columns.values(), default=-1) + 1
        return max(self.min_columns, widest)


@dataclass(frozen=True)
class NoMatches:
    """The grid rendered the portal's "no matching records" phrase instead of data."""

    text: str = ""


@dataclass
class GridRows:
    rows: Iterator[list[str]]


GridSnapshot = Union[NoMatches, GridRows]
