"""Tests for the per-host lock."""

import pytest

from iapdeploy.exceptions import HostBusyError
from iapdeploy.services.host_lock import HostLock, lock_file_name


def test_second_holder_times_out(lock_dir):
    with HostLock("demo-project/us-central1-a/vm-a", lock_dir, timeout=1):
        with pytest.raises(HostBusyError) as exc_info:
            HostLock("demo-project/us-central1-a/vm-a", lock_dir, timeout=0).acquire()

    assert exc_info.value.stage == "lock"
    assert exc_info.value.host_key == "demo-project/us-central1-a/vm-a"


def test_released_lock_can_be_taken(lock_dir):
    first = HostLock("p/z/vm-a", lock_dir)
    first.acquire()
    first.release()

    second = HostLock("p/z/vm-a", lock_dir, timeout=0)
    with second:
        assert second.is_held
    assert not second.is_held


def test_different_hosts_do_not_block(lock_dir):
    with HostLock("p/z/vm-a", lock_dir):
        with HostLock("p/z/vm-b", lock_dir, timeout=0) as other:
            assert other.is_held


def test_lock_file_names_are_distinct():
    assert lock_file_name("p/z/vm-a") != lock_file_name("p-z-vm-a")
    assert "/" not in lock_file_name("p/z/vm-a")
