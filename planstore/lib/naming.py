"""
Identifier sanitization and validation.

Epic and PRD names are canonical slugs: lowercase alphanumeric runs joined
by single hyphens, 3-50 characters. Tasks are numbered 001..999 within
their epic.

sanitize() alone does not guarantee a valid slug (an all-symbol input
sanitizes to ""). Always run validate() on its output.
"""

import re
from dataclasses import dataclass

from planstore.lib.constants import (
    EFFORTS,
    MAX_SLUG_LEN,
    MAX_TASK_NUMBER,
    MIN_SLUG_LEN,
    SLUG_PATTERN,
    TASK_NUMBER_PATTERN,
    WORK_STATUSES,
)
from planstore.lib.errors import InvalidIdentifier


@dataclass
class NameCheck:
    """Outcome of a validation check. Never raised."""
    valid: bool
    error: str | None = None

    def __bool__(self) -> bool:
        return self.valid


def sanitize(raw: str) -> str:
    """Convert a human-supplied name into slug form.

    >>> sanitize("  User Authentication!! ")
    'user-authentication'
    """
    name = raw.lower().strip()
    name = re.sub(r'[^a-z0-9\-\s]', '', name)
    name = re.sub(r'\s+', '-', name)
    name = re.sub(r'-+', '-', name)
    return name.strip('-')


def validate(slug: str) -> NameCheck:
    """Check slug length bounds and pattern."""
    if len(slug) < MIN_SLUG_LEN:
        return NameCheck(False, f"Name must be at least {MIN_SLUG_LEN} characters")
    if len(slug) > MAX_SLUG_LEN:
        return NameCheck(False, f"Name must be at most {MAX_SLUG_LEN} characters")
    if not SLUG_PATTERN.match(slug):
        return NameCheck(
            False,
            "Name must be lowercase alphanumeric with hyphens (e.g., user-authentication)",
        )
    return NameCheck(True)


def require_valid(slug: str, kind: str) -> str:
    """Return slug if valid, else raise InvalidIdentifier."""
    check = validate(slug)
    if not check:
        raise InvalidIdentifier(kind, slug, check.error)
    return slug


def format_task_number(index: int) -> str:
    """Format a 1-based task index as a 3-digit task number."""
    if not 1 <= index <= MAX_TASK_NUMBER:
        raise ValueError(f"Task index must be 1-{MAX_TASK_NUMBER}, got {index}")
    return f"{index:03d}"


def parse_task_number(number: str) -> int:
    """Inverse of format_task_number."""
    if not TASK_NUMBER_PATTERN.match(number):
        raise ValueError(f"Task number must be 3 digits (e.g., 001), got '{number}'")
    index = int(number)
    if index < 1:
        raise ValueError("Task number 000 is not allowed")
    return index


def validate_task_number(number: str) -> NameCheck:
    try:
        parse_task_number(number)
    except ValueError as e:
        return NameCheck(False, str(e))
    return NameCheck(True)


def validate_status(status: str) -> NameCheck:
    if status in WORK_STATUSES:
        return NameCheck(True)
    return NameCheck(False, f"Status must be one of: {', '.join(WORK_STATUSES)}")


def validate_effort(effort: str) -> NameCheck:
    if effort in EFFORTS:
        return NameCheck(True)
    return NameCheck(False, f"Effort must be one of: {', '.join(EFFORTS)}")
