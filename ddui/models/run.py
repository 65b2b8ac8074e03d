"""Run event data models.

A run reports progress as an ordered sequence of RunEvent records. Every
sequence ends with exactly one ``done`` event, and that event carries a
RunSummary. Events go over the wire as newline-delimited JSON.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RunLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    DONE = "done"


class RunSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    hosts: int = Field(default=0, ge=0)
    stacks: int = Field(default=0, ge=0)
    changed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)


class RunEvent(BaseModel):
    """One progress record of a run."""

    model_config = ConfigDict(frozen=True)

    ts: Optional[str] = Field(default=None, description="RFC3339 UTC timestamp")
    level: RunLevel
    msg: Optional[str] = None
    edition: Optional[str] = None
    mode: Optional[str] = None
    summary: Optional[RunSummary] = None

    @model_validator(mode="after")
    def _done_carries_summary(self) -> "RunEvent":
        if self.level is RunLevel.DONE and self.summary is None:
            raise ValueError("done events must carry a summary")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.level is RunLevel.DONE

    def to_line(self) -> str:
        """Serialize as one compact JSON object terminated by a newline."""
        return self.model_dump_json(exclude_none=True) + "\n"

    @classmethod
    def info(cls, msg: str, **kwargs) -> "RunEvent":
        return cls(level=RunLevel.INFO, msg=msg, **kwargs)

    @classmethod
    def error(cls, msg: str, **kwargs) -> "RunEvent":
        return cls(level=RunLevel.ERROR, msg=msg, **kwargs)

    @classmethod
    def done(cls, summary: RunSummary, **kwargs) -> "RunEvent":
        return cls(level=RunLevel.DONE, summary=summary, **kwargs)


class RunRequest(BaseModel):
    mode: str = Field(max_length=64)

    @field_validator("mode")
    @classmethod
    def _mode_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("mode must not be empty")
        return value
