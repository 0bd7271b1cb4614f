"""Typed records produced by the extraction step.

Both record kinds are frozen: classification fields (compliance, urgency,
fiscal year) are derived on every view pass and never written back.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from ktlo.exceptions import MalformedRow


class TaskStatus(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"

    @classmethod
    def parse(cls, value: object) -> "TaskStatus":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip().lower()
            for status in cls:
                if status.value.lower() == text:
                    return status
        return cls.NOT_STARTED


DueDate = Union[float, str, None]


@dataclass(frozen=True)
class TaskRecord:
    item: str
    received_on: Optional[float] = None
    triaged: bool = False
    ccs_action_needed: bool = False
    status: TaskStatus = TaskStatus.NOT_STARTED
    comments: Optional[str] = None
    due_date: DueDate = None
    assignee: str = "Unassigned"

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["status"] = self.status.value
        return out

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TaskRecord":
        item = str(raw.get("item") or "").strip()
        if not item:
            raise MalformedRow("missing task title")
        return cls(
            item=item,
            received_on=raw.get("received_on"),
            triaged=bool(raw.get("triaged", False)),
            ccs_action_needed=bool(raw.get("ccs_action_needed", False)),
            status=TaskStatus.parse(raw.get("status")),
            comments=raw.get("comments"),
            due_date=raw.get("due_date"),
            assignee=raw.get("assignee") or "Unassigned",
        )


@dataclass(frozen=True)
class DbInstanceRecord:
    environment: str
    auto_minor_version_upgrade: bool
    instance_id: str
    engine_version: str
    owner: str = "Unknown"
    # ISO date (YYYY-MM-DD) or "Unknown"
    end_of_standard_support: str = "Unknown"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "DbInstanceRecord":
        instance_id = str(raw.get("instance_id") or "").strip()
        if not instance_id:
            raise MalformedRow("missing instance id")
        return cls(
            environment=str(raw.get("environment") or ""),
            auto_minor_version_upgrade=bool(raw.get("auto_minor_version_upgrade", False)),
            instance_id=instance_id,
            engine_version=str(raw.get("engine_version") or ""),
            owner=raw.get("owner") or "Unknown",
            end_of_standard_support=raw.get("end_of_standard_support") or "Unknown",
        )
