from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator

WILDCARD = "*"


class Target(BaseModel):
    """A named destination for events.

    Targets without a ``url`` are delivered in-process through the local
    notifier; targets with one are delivered over HTTP POST only.
    """

    name: str
    url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    events: List[str] = Field(default_factory=list)

    @field_validator("headers", "events", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return {} if info.field_name == "headers" else []
        return value

    @property
    def is_remote(self) -> bool:
        return bool(self.url)

    def matches(self, event_name: str) -> bool:
        return event_name in self.events or WILDCARD in self.events


class TargetUpdate(BaseModel):
    url: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    events: Optional[List[str]] = None


@dataclass
class EmitError:
    target: str
    event: str
    error: BaseException

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "event": self.event,
            "error": str(self.error),
            "type": type(self.error).__name__,
        }


@dataclass
class EmitResult:
    """Aggregated outcome of one ``emit`` call."""

    success: bool = True
    errors: List[EmitError] = field(default_factory=list)

    def add_error(self, target: str, event: str, error: BaseException) -> EmitError:
        entry = EmitError(target=target, event=event, error=error)
        self.errors.append(entry)
        self.success = False
        return entry

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "errors": [error.to_dict() for error in self.errors],
        }
