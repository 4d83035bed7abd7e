"""
Advisory per-entity locks.

Uses flock on .claude/locks/<kind>/<id>.lock so that read-modify-write
sequences on one entity serialize instead of losing updates. A process
must not take the same entity lock twice while holding it.
"""

import fcntl
import os
import time
from contextlib import contextmanager
from pathlib import Path

from planstore.lib.constants import LOCKS_DIR


class LockTimeout(Exception):
    """Lock acquisition timed out."""
    pass


POLL_INTERVAL = 0.05


def lock_path(claude_dir: Path, kind: str, ident: str) -> Path:
    # Task ids look like "checkout-flow/001"; keep them inside the kind dir
    safe = ident.replace("/", "__")
    return claude_dir / LOCKS_DIR / kind / f"{safe}.lock"


def is_locked(claude_dir: Path, kind: str, ident: str) -> bool:
    """Check whether another holder currently owns the lock."""
    path = lock_path(claude_dir, kind, ident)
    if not path.exists():
        return False

    with open(path, "r") as fd:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return True
        fcntl.flock(fd, fcntl.LOCK_UN)
    return False


@contextmanager
def _acquire_lock(path: Path, timeout: float, lock_name: str):
    """
    Internal helper to acquire a file lock.

    Lock files are never deleted: removing them lets two processes hold
    "exclusive" locks on different inodes with the same path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = open(path, "w")
    start = time.monotonic()

    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            break
        except BlockingIOError:
            if time.monotonic() - start > timeout:
                fd.close()
                raise LockTimeout(f"Could not acquire {lock_name} within {timeout}s")
            time.sleep(POLL_INTERVAL)

    try:
        fd.write(f"{os.getpid()}\n")
        fd.flush()
        yield
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        fd.close()


@contextmanager
def entity_lock(claude_dir: Path, kind: str, ident: str, timeout: float = 10):
    """Acquire the lock for one entity, yield, release on exit."""
    path = lock_path(claude_dir, kind, ident)
    with _acquire_lock(path, timeout, f"lock for {kind} {ident}"):
        yield
