"""
Data models for PM entities.

Each kind is a concrete dataclass. Headers are converted to and from plain
dicts only at the codec boundary (to_header / from_header), after schema
validation.
"""

from dataclasses import dataclass, field
from typing import ClassVar, Optional, Union

from planstore.lib.constants import KIND_EPIC, KIND_PRD, KIND_TASK, STATUS_OPEN


def _drop_none(header: dict) -> dict:
    return {k: v for k, v in header.items() if v is not None}


@dataclass
class Prd:
    """A requirement document. May later produce one epic."""
    KIND: ClassVar[str] = KIND_PRD

    id: str                                    # slug, e.g. checkout-flow
    name: str
    status: str                                # draft, review, approved, implemented
    created: str                               # ISO timestamp
    updated: str
    author: Optional[str] = None
    version: Optional[str] = None
    body: str = ""

    @property
    def ident(self) -> str:
        return self.id

    def to_header(self) -> dict:
        return _drop_none({
            "name": self.name,
            "status": self.status,
            "created": self.created,
            "updated": self.updated,
            "author": self.author,
            "version": self.version,
        })

    @classmethod
    def from_header(cls, prd_id: str, header: dict, body: str = "") -> "Prd":
        return cls(
            id=prd_id,
            name=header["name"],
            status=header["status"],
            created=header["created"],
            updated=header["updated"],
            author=header.get("author"),
            version=header.get("version"),
            body=body,
        )


@dataclass
class Epic:
    """A unit of work decomposed into tasks.

    progress, total_tasks and completed_tasks are derived from the task
    files and rewritten on every task mutation.
    """
    KIND: ClassVar[str] = KIND_EPIC

    id: str
    name: str
    status: str                                # open, in-progress, completed, blocked
    created: str
    updated: str
    progress: int = 0                          # 0-100
    total_tasks: int = 0
    completed_tasks: int = 0
    prd: Optional[str] = None                  # Source PRD slug
    body: str = ""

    @property
    def ident(self) -> str:
        return self.id

    def to_header(self) -> dict:
        return _drop_none({
            "name": self.name,
            "status": self.status,
            "created": self.created,
            "updated": self.updated,
            "progress": self.progress,
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "prd": self.prd,
        })

    @classmethod
    def from_header(cls, epic_id: str, header: dict, body: str = "") -> "Epic":
        return cls(
            id=epic_id,
            name=header["name"],
            status=header["status"],
            created=header["created"],
            updated=header["updated"],
            progress=header.get("progress", 0),
            total_tasks=header.get("total_tasks", 0),
            completed_tasks=header.get("completed_tasks", 0),
            prd=header.get("prd"),
            body=body,
        )


@dataclass
class Task:
    """Smallest tracked unit of work, numbered 001..999 within its epic."""
    KIND: ClassVar[str] = KIND_TASK

    epic_id: str
    id: str                                    # 001
    name: str
    status: str = STATUS_OPEN
    created: str = ""
    updated: str = ""
    depends_on: list[str] = field(default_factory=list)      # Must be completed first
    conflicts_with: list[str] = field(default_factory=list)  # Must not run concurrently
    parallel: bool = True
    effort: Optional[str] = None               # xs, s, m, l, xl
    assignee: Optional[str] = None
    body: str = ""

    @property
    def ident(self) -> str:
        return f"{self.epic_id}/{self.id}"

    def to_header(self) -> dict:
        return _drop_none({
            "name": self.name,
            "status": self.status,
            "created": self.created,
            "updated": self.updated,
            "depends_on": list(self.depends_on),
            "conflicts_with": list(self.conflicts_with),
            "parallel": self.parallel,
            "effort": self.effort,
            "assignee": self.assignee,
        })

    @classmethod
    def from_header(cls, epic_id: str, task_id: str, header: dict, body: str = "") -> "Task":
        return cls(
            epic_id=epic_id,
            id=task_id,
            name=header["name"],
            status=header["status"],
            created=header["created"],
            updated=header["updated"],
            depends_on=list(header.get("depends_on", [])),
            conflicts_with=list(header.get("conflicts_with", [])),
            parallel=header.get("parallel", True),
            effort=header.get("effort"),
            assignee=header.get("assignee"),
            body=body,
        )


Entity = Union[Prd, Epic, Task]
