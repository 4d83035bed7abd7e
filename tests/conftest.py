"""Shared fixtures for planstore tests."""

import pytest

from planstore.lib.config import PMConfig
from planstore.pm import PMContext, init_project


@pytest.fixture
def ctx(tmp_path):
    """Initialized project in a temp dir. The init entry is cleared from the memory bank."""
    context = PMContext.open(tmp_path, PMConfig(lock_timeout=2))
    init_project(context)
    context.bank.reset()
    return context
