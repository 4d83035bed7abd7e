"""
Memory bank: append-only audit trail of every mutating PM operation.

Stored as .claude/memory_bank.md, one markdown section per entry:

    ## [2025-01-01T12:00:00.000Z] ✅ Operation: epic_create

    **Details**: Created epic checkout-flow

    **Context**:
    - epic: "checkout-flow"

    ---

Entries are only ever appended; reset() is the only way to remove them.
Recording is best-effort: a failed write is logged and never raised, so an
audit problem cannot abort the operation it describes.
"""

import functools
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from planstore.lib.constants import MEMORY_BANK_FILE
from planstore.lib.frontmatter import now_iso
from planstore.store.locking import entity_lock
from planstore.store.repository import atomic_write

logger = logging.getLogger(__name__)

SUCCESS_MARK = "✅"
FAILURE_MARK = "❌"
SEPARATOR = "---"
CONTINUATION = "  "

HEADER = """# Memory Bank

**Purpose**: Shared context and audit trail for Project Management operations

**Format**: Chronological log of all PM operations (PRD, Epic, Task management)

**Usage**: Agents query this log to understand project history and context

---

"""

_ENTRY_HEADING_RE = re.compile(
    r'^## \[(?P<timestamp>[^\]]+)\] (?P<mark>' + SUCCESS_MARK + '|' + FAILURE_MARK + r') Operation: (?P<operation>.+)$',
    re.MULTILINE,
)


class Operation(str, Enum):
    """Operation names recorded in the memory bank."""
    PM_INIT = "pm_init"

    PRD_NEW = "prd_new"
    PRD_EDIT = "prd_edit"
    PRD_DELETE = "prd_delete"

    EPIC_CREATE = "epic_create"
    EPIC_START = "epic_start"
    EPIC_CLOSE = "epic_close"
    EPIC_EDIT = "epic_edit"
    EPIC_DELETE = "epic_delete"

    TASK_CREATE = "task_create"
    TASK_START = "task_start"
    TASK_COMPLETE = "task_complete"
    TASK_BLOCK = "task_block"
    TASK_EDIT = "task_edit"
    TASK_DELETE = "task_delete"

    STATUS_CHECK = "status_check"
    VALIDATION = "validation"
    ERROR = "error"


def _field_line(label: str, text: str) -> str:
    # Continuation lines are indented so caller text can never start a heading or separator
    first, *rest = str(text).splitlines() or [""]
    return "\n".join([f"**{label}**: {first}"] + [CONTINUATION + line for line in rest])


@dataclass
class AuditEntry:
    """A single memory bank entry."""
    operation: str
    details: str
    success: bool = True
    context: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    timestamp: str = field(default_factory=now_iso)

    def to_markdown(self) -> str:
        mark = SUCCESS_MARK if self.success else FAILURE_MARK
        operation = " ".join(str(self.operation).splitlines())
        lines = [f"## [{self.timestamp}] {mark} Operation: {operation}", ""]
        lines += [_field_line("Details", self.details), ""]

        if self.context:
            lines.append("**Context**:")
            for key, value in self.context.items():
                lines.append(f"- {key}: {json.dumps(value, default=str, ensure_ascii=False)}")
            lines.append("")

        if self.error:
            lines += [_field_line("Error", self.error), ""]

        lines.append(SEPARATOR)
        return "\n".join(lines) + "\n"


@dataclass
class AuditStats:
    total_entries: int
    successful_operations: int
    failed_operations: int
    recent_operations: list[str]


def _op_name(operation) -> str:
    return operation.value if isinstance(operation, Enum) else str(operation)


def _parse_context_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_entries(content: str) -> list[AuditEntry]:
    """Parse memory bank text into entries, oldest first."""
    headings = list(_ENTRY_HEADING_RE.finditer(content))
    entries = []

    for i, heading in enumerate(headings):
        end = headings[i + 1].start() if i + 1 < len(headings) else len(content)
        chunk = content[heading.end():end]

        sections: dict[str, list[str]] = {"details": [], "error": []}
        context: dict[str, Any] = {}
        current = None

        for line in chunk.split("\n"):
            if line.rstrip() == SEPARATOR:
                break
            if line.startswith("**Details**: "):
                current = "details"
                sections["details"].append(line[len("**Details**: "):])
            elif line.startswith("**Context**:"):
                current = "context"
            elif line.startswith("**Error**: "):
                current = "error"
                sections["error"].append(line[len("**Error**: "):])
            elif current == "context":
                if line.startswith("- ") and ": " in line:
                    key, _, value = line[2:].partition(": ")
                    context[key] = _parse_context_value(value)
            elif current in sections:
                sections[current].append(line[len(CONTINUATION):] if line.startswith(CONTINUATION) else line)

        details = "\n".join(sections["details"]).strip()
        error = "\n".join(sections["error"]).strip() or None

        entries.append(AuditEntry(
            timestamp=heading.group("timestamp"),
            operation=heading.group("operation").strip(),
            details=details,
            success=heading.group("mark") == SUCCESS_MARK,
            context=context or None,
            error=error,
        ))

    return entries


class MemoryBank:
    """Append-only audit log for one project."""

    def __init__(self, claude_dir: Path, recent_operations: int = 5, lock_timeout: float = 10):
        self.claude_dir = Path(claude_dir)
        self.path = self.claude_dir / MEMORY_BANK_FILE
        self.recent_operations = recent_operations
        self.lock_timeout = lock_timeout

    def _lock(self):
        return entity_lock(self.claude_dir, "memory_bank", "memory_bank", self.lock_timeout)

    def initialize(self) -> None:
        """Create the file with its header if it doesn't exist."""
        if self.path.exists():
            return
        atomic_write(self.path, HEADER)

    def record(self, entry: AuditEntry) -> bool:
        """Append an entry. Returns False (and logs) if the write failed."""
        try:
            with self._lock():
                self.initialize()
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write("\n" + entry.to_markdown())
                    f.flush()
        except Exception as e:
            logger.error(f"Failed to record {entry.operation} in memory bank {self.path}: {e}")
            return False
        return True

    def record_success(self, operation: str, details: str, context: Optional[dict] = None) -> bool:
        return self.record(AuditEntry(operation=_op_name(operation), details=details, context=context))

    def record_failure(self, operation: str, details: str, error: str,
                       context: Optional[dict] = None) -> bool:
        return self.record(AuditEntry(
            operation=_op_name(operation), details=details, success=False, context=context, error=error,
        ))

    def entries(self) -> list[AuditEntry]:
        """All entries, oldest first."""
        if not self.path.exists():
            return []
        return parse_entries(self.path.read_text(encoding="utf-8"))

    def query(self, operation: Optional[str] = None, limit: Optional[int] = None) -> list[AuditEntry]:
        """Entries newest first, optionally filtered by operation name substring."""
        results = list(reversed(self.entries()))
        if operation:
            needle = _op_name(operation)
            results = [e for e in results if needle in e.operation]
        if limit is not None:
            results = results[:limit]
        return results

    def stats(self, recent: Optional[int] = None) -> AuditStats:
        """Counts by full scan of the log."""
        entries = self.entries()
        success = sum(1 for e in entries if e.success)
        n = self.recent_operations if recent is None else recent
        recent_ops = [e.operation for e in reversed(entries)][:n]
        return AuditStats(
            total_entries=len(entries),
            successful_operations=success,
            failed_operations=len(entries) - success,
            recent_operations=recent_ops,
        )

    def reset(self) -> None:
        """Destroy every entry and reinitialize the header."""
        with self._lock():
            if self.path.exists():
                self.path.unlink()
            self.initialize()
        logger.warning(f"Memory bank reset: {self.path}")


def audited(operation: Operation, describe: Optional[Callable[..., str]] = None):
    """Record exactly one memory bank entry per call of the wrapped operation.

    The wrapped function takes a PMContext as its first argument. On success
    the entry details come from describe(result) (or the operation name);
    the context map comes from the keyword arguments. On failure the
    exception is recorded and re-raised.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(ctx, *args, **kwargs):
            call_context = {"args": [str(a) for a in args]} if args else {}
            call_context.update({k: v for k, v in kwargs.items() if v is not None})
            try:
                result = func(ctx, *args, **kwargs)
            except Exception as e:
                ctx.bank.record_failure(
                    operation.value,
                    f"{func.__name__} failed",
                    f"{type(e).__name__}: {e}",
                    call_context or None,
                )
                raise
            details = describe(result) if describe else operation.value
            ctx.bank.record_success(operation.value, details, call_context or None)
            return result
        return wrapper
    return decorator
