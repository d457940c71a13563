# logview/models.py
from __future__ import annotations
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SpanLabel(str, Enum):
    NOISE = "noise"
    TIMESTAMP = "timestamp"
    LEVEL = "level"
    TARGET = "target"
    TEXT = "text"
    TEXT_MATCH = "text_match"


class Span(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    label: SpanLabel


class DisplayLine(BaseModel):
    """One wrapped row of a logical log line.

    Rows produced from the same logical line share its number, level and
    timestamp. Field aliases are the short names the browser client reads.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    logical_line_number: int = Field(alias="lln")
    level: int | None = Field(default=None, alias="ll")
    timestamp: datetime | None = Field(default=None, alias="ts")
    spans: list[Span] = []

    @property
    def text(self) -> str:
        return "".join(span.text for span in self.spans)


class QueryResult(BaseModel):
    total_display_lines: int
    display_lines: list[DisplayLine]
    row_offset: int = 0

    @classmethod
    def empty(cls) -> QueryResult:
        return cls(total_display_lines=0, display_lines=[], row_offset=0)

    def range(self, start: int, end: int | None = None) -> QueryResult:
        """Select rows [start, end), clamped to the rows held.

        A missing end selects through the last row. row_offset records the
        clamped start.
        """
        count = len(self.display_lines)
        start = min(max(start, 0), count)
        end = count if end is None else min(max(end, 0), count)
        return QueryResult(
            total_display_lines=self.total_display_lines,
            display_lines=self.display_lines[start:end],
            row_offset=start,
        )


class Method(str, Enum):
    LIST = "list"
    LOGS = "logs"
    TAIL = "tail"
    DONE = "done"


class LogsParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cols: int = Field(ge=0)
    filter: str | None = None
    log_file: Path = Field(validation_alias=AliasChoices("log_file", "logset"))
    # Present for a one-shot ranged query; absent to start tailing.
    from_: int | None = Field(default=None, ge=0, validation_alias="from")
    to: int | None = Field(default=None, ge=0)

    @field_validator("log_file")
    @classmethod
    def validate_log_file(cls, v: Path) -> Path:
        if "\x00" in str(v):
            raise ValueError("log_file must not contain NUL characters")
        return v

    @property
    def is_query(self) -> bool:
        return self.from_ is not None

    def cache_key(self) -> tuple[int, str | None, Path]:
        return (self.cols, self.filter, self.log_file)


class Request(BaseModel):
    id: int = Field(ge=0)
    method: str
    params: dict[str, Any] | None = None


class ErrorBody(BaseModel):
    code: int
    message: str


class Response(BaseModel):
    id: int
    result: Any = None
    error: ErrorBody | None = None


class Notification(BaseModel):
    method: Method
    params: dict[str, Any] = {}


def to_wire(model: BaseModel) -> dict:
    """Dump a model to JSON-compatible data using its wire aliases."""
    return model.model_dump(mode="json", by_alias=True)
