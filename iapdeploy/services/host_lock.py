"""Per-host lock so two runs never configure the same VM at once."""

import fcntl
import hashlib
import os
import re
import time
from pathlib import Path
from typing import Optional

from iapdeploy.constants import DEFAULT_LOCK_DIR, DEFAULT_LOCK_TIMEOUT
from iapdeploy.exceptions import HostBusyError

POLL_INTERVAL = 0.5


def lock_file_name(host_key: str) -> str:
    """Readable, filesystem-safe lock file name for a host key."""
    readable = re.sub(r"[^A-Za-z0-9._-]+", "_", host_key)
    digest = hashlib.sha256(host_key.encode()).hexdigest()[:12]
    return f"{readable}.{digest}.lock"


class HostLock:
    """
    Exclusive advisory lock keyed by host identifier.

    Backed by flock() on a file in the lock directory, so it serializes
    runs across processes as well as threads holding separate instances.
    """

    def __init__(
        self,
        host_key: str,
        lock_dir: Optional[Path] = None,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
    ):
        self.host_key = host_key
        self.lock_dir = Path(lock_dir or DEFAULT_LOCK_DIR).expanduser()
        self.timeout = timeout
        self.path = self.lock_dir / lock_file_name(host_key)
        self._fd: Optional[int] = None

    def acquire(self) -> None:
        """
        Take the lock, waiting up to the timeout.

        Raises:
            HostBusyError: If another holder keeps the lock past the timeout
        """
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o600)
        deadline = time.monotonic() + self.timeout

        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    os.close(fd)
                    raise HostBusyError(self.host_key, self.timeout)
                time.sleep(POLL_INTERVAL)

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd

    def release(self) -> None:
        if self._fd is None:
            return
        fcntl.flock(self._fd, fcntl.LOCK_UN)
        os.close(self._fd)
        self._fd = None

    @property
    def is_held(self) -> bool:
        return self._fd is not None

    def __enter__(self) -> "HostLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, _exc_tb):
        self.release()
        return False
