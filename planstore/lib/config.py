"""
Project configuration.

Loads .claude/pm.yaml to tune logging, locking and the audit log.
If no config file exists, returns defaults.

Example pm.yaml:

    log_level: DEBUG
    recent_operations: 10
    lock_timeout: 30
    doc_ref_scheme: mcp
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from planstore.lib.constants import CLAUDE_DIR, CONFIG_FILE

logger = logging.getLogger(__name__)

WORKSPACE_ENV_VARS = ("PM_WORKSPACE", "AUTOPM_WORKSPACE")

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class PMConfig:
    """Project configuration from pm.yaml."""
    log_level: str = "INFO"
    recent_operations: int = 5  # Operation names reported by MemoryBank.stats()
    lock_timeout: int = 10  # Seconds to wait for an entity lock
    doc_ref_scheme: str = "mcp"  # Required scheme for tool documentation refs


def config_path(root: Path) -> Path:
    return root / CLAUDE_DIR / CONFIG_FILE


def load_config(root: Optional[Path]) -> PMConfig:
    """Load pm.yaml and return PMConfig.

    If root is None, the file doesn't exist or it fails to parse, returns
    defaults. Unknown keys are ignored with a warning.
    """
    if root is None:
        return PMConfig()

    path = config_path(root)
    if not path.exists():
        return PMConfig()

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse {path}: {e}")
        return PMConfig()

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: expected a mapping, got {type(data).__name__}")
        return PMConfig()

    known = {f.name: f for f in fields(PMConfig)}
    values = {}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Unknown config key '{key}' in {path}")
            continue
        values[key] = value

    config = PMConfig(**values)

    level = str(config.log_level).upper()
    if level not in VALID_LOG_LEVELS:
        logger.warning(f"Unknown log_level '{config.log_level}', defaulting to INFO")
        level = "INFO"
    config.log_level = level

    for key in ("recent_operations", "lock_timeout"):
        value = getattr(config, key)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            default = known[key].default
            logger.warning(f"Invalid {key} '{value}', defaulting to {default}")
            setattr(config, key, default)

    return config


def resolve_root(explicit: Optional[str] = None) -> Path:
    """Resolve the project root for the CLI.

    Priority: explicit --root, PM_WORKSPACE, AUTOPM_WORKSPACE, cwd.
    Library code receives the root explicitly and never calls this.
    """
    if explicit:
        return Path(explicit)
    for var in WORKSPACE_ENV_VARS:
        value = os.environ.get(var)
        if value:
            return Path(value)
    return Path.cwd()
