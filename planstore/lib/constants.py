"""Shared constants for planstore."""

import re

# Slug validation (epics, PRDs)
SLUG_PATTERN = re.compile(r'^[a-z0-9]+(-[a-z0-9]+)*$')
MIN_SLUG_LEN = 3
MAX_SLUG_LEN = 50

# Task numbering: 001..999
TASK_NUMBER_PATTERN = re.compile(r'^\d{3}$')
MAX_TASK_NUMBER = 999

# Entity kinds
KIND_PRD = "prd"
KIND_EPIC = "epic"
KIND_TASK = "task"
KINDS = (KIND_PRD, KIND_EPIC, KIND_TASK)

# Status values
STATUS_OPEN = "open"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
STATUS_BLOCKED = "blocked"
WORK_STATUSES = (STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_BLOCKED)

PRD_STATUSES = ("draft", "review", "approved", "implemented")
EFFORTS = ("xs", "s", "m", "l", "xl")

# On-disk layout under the project root
CLAUDE_DIR = ".claude"
PRDS_DIR = "prds"
EPICS_DIR = "epics"
EPIC_FILE = "epic.md"
MEMORY_BANK_FILE = "memory_bank.md"
CONFIG_FILE = "pm.yaml"
LOCKS_DIR = "locks"
