"""
Project context shared by PM operations.
"""

from dataclasses import dataclass, field
from pathlib import Path

from planstore.lib.config import PMConfig, load_config
from planstore.lib.memory_bank import MemoryBank
from planstore.store.repository import EntityStore


@dataclass
class PMContext:
    """Store, audit log and configuration for one project root."""
    store: EntityStore
    bank: MemoryBank
    config: PMConfig = field(default_factory=PMConfig)

    @property
    def root(self) -> Path:
        return self.store.root

    @classmethod
    def open(cls, root: Path, config: PMConfig | None = None) -> "PMContext":
        """Build a context for root, loading .claude/pm.yaml unless config is given."""
        root = Path(root)
        if config is None:
            config = load_config(root)
        store = EntityStore(root, lock_timeout=config.lock_timeout)
        bank = MemoryBank(
            store.claude_dir,
            recent_operations=config.recent_operations,
            lock_timeout=config.lock_timeout,
        )
        return cls(store=store, bank=bank, config=config)
