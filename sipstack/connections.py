"""Reference-counted TCP and UDP connections plus an in-memory recorder."""

from __future__ import annotations

import logging
import socket
import threading
from typing import List, Optional, Tuple, Union

from .transport import (
    DEFAULT_UDP_PORT,
    TRANSPORT_BUFFER_READ_SIZE,
    join_host_port,
    parse_addr,
)

log = logging.getLogger(__name__)

UDP_MTU_SIZE = 1500

Message = Union[bytes, bytearray, object]


class UDPMTUCongestionError(OSError):
    """A message is too large to be sent safely over UDP."""

    def __init__(self, size: int) -> None:
        super().__init__(f"size of packet larger than MTU: {size} bytes")
        self.size = size


def _encode(msg: Message) -> bytes:
    if isinstance(msg, (bytes, bytearray)):
        return bytes(msg)
    return str(msg).encode("utf-8")


def _format_sockname(name: object) -> str:
    if isinstance(name, tuple) and len(name) >= 2:
        return join_host_port(str(name[0]), int(name[1]))
    return str(name)


def is_keepalive(data: bytes) -> bool:
    """True for one or two CRLF sequences, the keep-alive of RFC 5626 3.5.1."""
    return len(data) <= 4 and not data.strip(b"\r\n")


class _RefCounted:
    """Shared reference counting and closed-state tracking."""

    _kind = "conn"

    def __init__(self, refcount: int) -> None:
        self._lock = threading.Lock()
        self._refcount = refcount
        self._closed = False

    def _describe(self) -> str:
        return ""

    def _add_ref(self, i: int) -> int:
        with self._lock:
            self._refcount += i
            count = self._refcount
        log.debug("%s reference change %s ref=%d", self._kind, self._describe(), count)
        return count

    def _decrement(self) -> int:
        with self._lock:
            self._refcount -= 1
            return self._refcount


class TCPConnection(_RefCounted):
    """A stream socket shared between transactions by reference counting."""

    _kind = "TCP"

    def __init__(self, sock: socket.socket, refcount: int = 0) -> None:
        super().__init__(refcount)
        self.sock = sock

    def _describe(self) -> str:
        try:
            peer = _format_sockname(self.sock.getpeername())
        except OSError:
            peer = "?"
        return f"{self.local_addr()} -> {peer}"

    def local_addr(self) -> str:
        try:
            return _format_sockname(self.sock.getsockname())
        except OSError:
            return ""

    def ref(self, i: int) -> int:
        """Add ``i`` to the reference count and return the new count."""
        return self._add_ref(i)

    def _hard_close(self) -> None:
        with self._lock:
            if self._closed:
                raise OSError("use of closed network connection")
            self._closed = True
        self.sock.close()

    def close(self) -> None:
        """Close the socket regardless of references; closing twice raises OSError."""
        with self._lock:
            self._refcount = 0
        log.debug("TCP doing hard close %s", self._describe())
        self._hard_close()

    def try_close(self) -> int:
        """Drop one reference and close the socket when none are left."""
        count = self._decrement()
        if count > 0:
            return count
        if count < 0:
            log.warning("TCP ref went negative %s ref=%d", self._describe(), count)
            return 0
        log.debug("TCP closing %s", self._describe())
        self._hard_close()
        return count

    def read(self, size: int = TRANSPORT_BUFFER_READ_SIZE) -> bytes:
        """Read up to ``size`` bytes; an empty result means the peer closed."""
        return self.sock.recv(size)

    def write(self, data: bytes) -> int:
        self.sock.sendall(data)
        return len(data)

    def write_msg(self, msg: Message) -> None:
        """Serialize ``msg`` and send it whole."""
        data = _encode(msg)
        try:
            written = self.write(data)
        except OSError as exc:
            raise OSError(f"conn {self._describe()} write err={exc}") from exc
        if written == 0:
            raise OSError("wrote 0 bytes")
        if written != len(data):
            raise OSError("fail to write full message")


class UDPConnection(_RefCounted):
    """A datagram socket, either a listener or one created for a client.

    Listener sockets are never closed through reference counting; whoever
    serves them closes them.
    """

    _kind = "UDP"

    def __init__(
        self,
        sock: socket.socket,
        *,
        listener: bool = False,
        connected: bool = False,
        refcount: int = 0,
    ) -> None:
        super().__init__(refcount)
        self.sock = sock
        self.listener = listener
        self.connected = connected
        self.packet_addr = self.local_addr()

    def _describe(self) -> str:
        return self.local_addr()

    def local_addr(self) -> str:
        try:
            return _format_sockname(self.sock.getsockname())
        except OSError:
            return ""

    def ref(self, i: int) -> int:
        """Add ``i`` to the reference count and return the new count."""
        return self._add_ref(i)

    def _hard_close(self) -> None:
        with self._lock:
            if self._closed:
                raise OSError("use of closed network connection")
            self._closed = True
        self.sock.close()

    def close(self) -> None:
        """Close the socket; listener sockets are left to their server."""
        with self._lock:
            self._refcount = 0
        if self.listener and not self.connected:
            return
        log.debug("UDP doing hard close %s", self._describe())
        self._hard_close()

    def try_close(self) -> int:
        count = self._decrement()
        if self.listener:
            return count
        if count > 0:
            return count
        if count < 0:
            log.warning("UDP ref went negative %s ref=%d", self._describe(), count)
            return 0
        self._hard_close()
        return count

    def read_from(self, size: int = TRANSPORT_BUFFER_READ_SIZE) -> Tuple[bytes, str]:
        """Receive one datagram; returns its data and the sender as ``host:port``."""
        data, addr = self.sock.recvfrom(size)
        return data, _format_sockname(addr)

    def write_to(self, data: bytes, addr: str) -> int:
        host, port = parse_addr(addr)
        return self.sock.sendto(data, (host, port))

    def write_msg(self, msg: Message, destination: str = "") -> None:
        """Send ``msg`` to ``destination`` (``host:port``; port 0 means 5060)."""
        data = _encode(msg)
        if len(data) > UDP_MTU_SIZE - 200:
            raise UDPMTUCongestionError(len(data))

        if self.connected:
            try:
                written = self.sock.send(data)
            except OSError as exc:
                raise OSError(f"conn {self.local_addr()} write err={exc}") from exc
        else:
            host, port = parse_addr(destination)
            if port == 0:
                port = DEFAULT_UDP_PORT
            try:
                written = self.write_to(data, join_host_port(host, port))
            except OSError as exc:
                raise OSError(f"udp conn {self.local_addr()} err. {exc}") from exc

        if written == 0:
            raise OSError("wrote 0 bytes")
        if written != len(data):
            raise OSError("fail to write full message")


class ConnRecorder:
    """A connection that keeps every written message instead of sending it."""

    def __init__(self) -> None:
        self.msgs: List[Message] = []
        self._lock = threading.Lock()
        self._ref = 0

    def local_addr(self) -> Optional[str]:
        return None

    def write_msg(self, msg: Message) -> None:
        self.msgs.append(msg)

    def ref(self, i: int) -> int:
        with self._lock:
            self._ref += i
            return self._ref

    def try_close(self) -> int:
        return self.ref(-1)

    def close(self) -> None:
        return None