"""Tests for planstore.store.locking module."""

import fcntl
import threading

import pytest

from planstore.store.locking import LockTimeout, entity_lock, is_locked, lock_path


class TestLockPath:
    def test_layout(self, tmp_path):
        assert lock_path(tmp_path, "epic", "checkout-flow") == tmp_path / "locks" / "epic" / "checkout-flow.lock"

    def test_task_ident_flattened(self, tmp_path):
        path = lock_path(tmp_path, "task", "checkout-flow/001")
        assert path.parent == tmp_path / "locks" / "task"
        assert "/" not in path.name


class TestEntityLock:
    """Tests for entity_lock()."""

    def test_acquire_and_release(self, tmp_path):
        with entity_lock(tmp_path, "epic", "checkout-flow"):
            assert lock_path(tmp_path, "epic", "checkout-flow").exists()
        assert not is_locked(tmp_path, "epic", "checkout-flow")

    def test_lock_file_kept_after_release(self, tmp_path):
        with entity_lock(tmp_path, "prd", "x"):
            pass
        assert lock_path(tmp_path, "prd", "x").exists()

    def test_is_locked_without_file(self, tmp_path):
        assert not is_locked(tmp_path, "epic", "never")

    def test_is_locked_while_held_elsewhere(self, tmp_path):
        path = lock_path(tmp_path, "epic", "checkout-flow")
        path.parent.mkdir(parents=True)
        with open(path, "w") as holder:
            fcntl.flock(holder, fcntl.LOCK_EX)
            assert is_locked(tmp_path, "epic", "checkout-flow")

    def test_times_out_when_held(self, tmp_path):
        path = lock_path(tmp_path, "epic", "checkout-flow")
        path.parent.mkdir(parents=True)
        with open(path, "w") as holder:
            fcntl.flock(holder, fcntl.LOCK_EX)
            with pytest.raises(LockTimeout):
                with entity_lock(tmp_path, "epic", "checkout-flow", timeout=0.1):
                    pass

    def test_different_entities_do_not_block(self, tmp_path):
        with entity_lock(tmp_path, "epic", "one", timeout=0.1):
            with entity_lock(tmp_path, "epic", "two", timeout=0.1):
                pass

    def test_serializes_threads(self, tmp_path):
        counter_file = tmp_path / "counter"
        counter_file.write_text("0")

        def bump():
            for _ in range(20):
                with entity_lock(tmp_path, "epic", "shared", timeout=5):
                    value = int(counter_file.read_text())
                    counter_file.write_text(str(value + 1))

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counter_file.read_text() == "80"
