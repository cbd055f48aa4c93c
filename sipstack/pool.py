"""Reference-counted connections shared by address."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """A transport connection whose lifetime is governed by a reference count.

    Connections also send messages with ``write_msg``; the pool only relies on
    the reference counting shown here.
    """

    def local_addr(self) -> str:
        """The local address the connection is bound to."""
        ...

    def ref(self, i: int) -> int:
        """Add ``i`` to the reference count and return the new count."""
        ...

    def try_close(self) -> int:
        """Drop one reference, closing when none remain; returns the count left."""
        ...

    def close(self) -> None:
        """Close the connection regardless of references."""
        ...


class ConnectionPool:
    """Thread-safe map from address to connection."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._conns: Dict[str, Connection] = {}

    def add(self, addr: str, conn: Connection) -> None:
        """Store ``conn`` under ``addr``, giving it one reference if it has none."""
        if conn.ref(0) < 1:
            conn.ref(1)
        with self._lock:
            self._conns[addr] = conn

    def add_if_not_exists(self, addr: str, conn: Connection) -> None:
        """Replace the connection stored under ``addr``; unknown addresses are left alone."""
        with self._lock:
            if addr not in self._conns:
                return
            self._conns[addr] = conn
        if conn.ref(0) < 1:
            conn.ref(1)

    def get(self, addr: str) -> Optional[Connection]:
        """Return the connection for ``addr`` with one more reference, or None.

        Callers release the reference with ``try_close`` when done.
        """
        with self._lock:
            conn = self._conns.get(addr)
        if conn is None:
            return None
        conn.ref(1)
        return conn

    def close_and_delete(self, conn: Connection, addr: str) -> None:
        """Remove ``addr`` and release ``conn``, closing it hard if still referenced."""
        with self._lock:
            self._conns.pop(addr, None)
            try:
                ref = conn.try_close()
            except OSError:
                ref = 0
            if ref > 0:
                conn.close()

    def delete(self, addr: str) -> None:
        with self._lock:
            self._conns.pop(addr, None)

    def delete_multiple(self, addrs: Iterable[str]) -> None:
        with self._lock:
            for addr in addrs:
                self._conns.pop(addr, None)

    def clear(self) -> None:
        """Close every referenced connection and empty the pool.

        The pool is emptied even when closing fails; failures are raised after.
        """
        errors: List[Exception] = []
        with self._lock:
            try:
                for conn in self._conns.values():
                    if conn.ref(0) <= 0:
                        continue
                    try:
                        conn.close()
                    except Exception as exc:  # collected and re-raised below
                        errors.append(exc)
            finally:
                self._conns = {}
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise OSError("; ".join(str(e) for e in errors)) from errors[0]

    def __len__(self) -> int:
        with self._lock:
            return len(self._conns)