"""
File-backed entity store.

Entities live under <root>/.claude:

  prds/<slug>.md
  epics/<slug>/epic.md
  epics/<slug>/<NNN>.md

This is the only module that touches entity files. Reads always go to disk
(no cache). Writes go through a temp file in the target directory followed
by os.replace, so a concurrent reader sees either the old or the new file,
never a partial one.
"""

import logging
import os
import re
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from planstore.lib.constants import (
    CLAUDE_DIR,
    EPIC_FILE,
    EPICS_DIR,
    KIND_EPIC,
    KIND_PRD,
    KIND_TASK,
    PRDS_DIR,
)
from planstore.lib.errors import AlreadyExists, InvalidIdentifier, NotFound
from planstore.store.locking import entity_lock

logger = logging.getLogger(__name__)

TASK_FILE_RE = re.compile(r'^(\d{3})\.md$')


def _display_id(ident: str, child_id: Optional[str]) -> str:
    return f"{ident}/{child_id}" if child_id else ident


class EntityStore:
    """Maps (kind, id[, child_id]) to files under <root>/.claude."""

    def __init__(self, root: Path, lock_timeout: float = 10):
        self.root = Path(root)
        self.lock_timeout = lock_timeout

    def __repr__(self) -> str:
        return f"EntityStore({str(self.root)!r})"

    @property
    def claude_dir(self) -> Path:
        return self.root / CLAUDE_DIR

    @property
    def prds_dir(self) -> Path:
        return self.claude_dir / PRDS_DIR

    @property
    def epics_dir(self) -> Path:
        return self.claude_dir / EPICS_DIR

    # ─────────────────────────────────────────────────────────────────────
    # Layout
    # ─────────────────────────────────────────────────────────────────────

    def initialize_project(self) -> Path:
        """Create .claude/, prds/ and epics/. Safe to call repeatedly."""
        for d in (self.claude_dir, self.prds_dir, self.epics_dir):
            d.mkdir(parents=True, exist_ok=True)
        return self.claude_dir

    def is_initialized(self) -> bool:
        return all(d.is_dir() for d in (self.claude_dir, self.prds_dir, self.epics_dir))

    def locate(self, kind: str, ident: str, child_id: Optional[str] = None) -> Path:
        """Compose the path for an entity. No I/O."""
        for part in (ident, child_id):
            if part is not None and (not part or "/" in part or "\\" in part or part.startswith(".")):
                raise InvalidIdentifier(kind, str(part), "must be a plain name, not a path")

        if kind == KIND_PRD:
            return self.prds_dir / f"{ident}.md"
        if kind == KIND_EPIC:
            return self.epics_dir / ident / EPIC_FILE
        if kind == KIND_TASK:
            if child_id is None:
                raise InvalidIdentifier(kind, ident, "task lookups need an epic id and a task number")
            return self.epics_dir / ident / f"{child_id}.md"
        raise ValueError(f"Unknown entity kind: {kind}")

    # ─────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────

    def exists(self, kind: str, ident: str, child_id: Optional[str] = None) -> bool:
        return self.locate(kind, ident, child_id).is_file()

    def list_ids(self, kind: str, parent: Optional[str] = None) -> list[str]:
        """List identifiers of a kind, sorted. Tasks need the epic as parent."""
        if kind == KIND_TASK:
            if parent is None:
                raise InvalidIdentifier(kind, "", "listing tasks needs an epic id")
            return self.list_children(parent)

        if kind == KIND_PRD:
            if not self.prds_dir.is_dir():
                return []
            return sorted(p.stem for p in self.prds_dir.glob("*.md") if p.is_file())

        if kind == KIND_EPIC:
            if not self.epics_dir.is_dir():
                return []
            return sorted(
                d.name for d in self.epics_dir.iterdir()
                if d.is_dir() and not d.name.startswith(("_", ".")) and (d / EPIC_FILE).is_file()
            )

        raise ValueError(f"Unknown entity kind: {kind}")

    def list_children(self, epic_id: str) -> list[str]:
        """List task numbers of an epic in numeric order (001 < 002 < ... < 010)."""
        epic_dir = self.locate(KIND_EPIC, epic_id).parent
        if not epic_dir.is_dir():
            return []

        numbers = []
        for f in epic_dir.iterdir():
            match = TASK_FILE_RE.match(f.name)
            if match and f.is_file():
                numbers.append(match.group(1))
        return sorted(numbers, key=int)

    # ─────────────────────────────────────────────────────────────────────
    # Whole-file I/O
    # ─────────────────────────────────────────────────────────────────────

    def read(self, kind: str, ident: str, child_id: Optional[str] = None) -> str:
        path = self.locate(kind, ident, child_id)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFound(kind, _display_id(ident, child_id)) from None

    def write(self, kind: str, ident: str, text: str, child_id: Optional[str] = None) -> Path:
        """Write the whole file atomically, creating parent directories."""
        path = self.locate(kind, ident, child_id)
        atomic_write(path, text)
        logger.debug(f"[STORE] wrote {kind} {_display_id(ident, child_id)}")
        return path

    def create(self, kind: str, ident: str, text: str, child_id: Optional[str] = None) -> Path:
        """Write a new entity. Creation is not idempotent.

        Raises:
            AlreadyExists: If the entity file is already present
        """
        if self.exists(kind, ident, child_id):
            raise AlreadyExists(kind, _display_id(ident, child_id))
        return self.write(kind, ident, text, child_id)

    def delete(self, kind: str, ident: str, child_id: Optional[str] = None) -> None:
        """Remove an entity. Deleting an epic removes its tasks too."""
        path = self.locate(kind, ident, child_id)
        if not path.is_file():
            raise NotFound(kind, _display_id(ident, child_id))

        if kind == KIND_EPIC:
            shutil.rmtree(path.parent)
        else:
            path.unlink()
        logger.info(f"[STORE] deleted {kind} {_display_id(ident, child_id)}")

    @contextmanager
    def lock(self, kind: str, ident: str):
        """Serialize read-modify-write on one entity."""
        with entity_lock(self.claude_dir, kind, ident, self.lock_timeout):
            yield


def atomic_write(path: Path, text: str) -> None:
    """Write text to path via temp file + rename in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
